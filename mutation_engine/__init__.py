"""
Mutation Detection & Genealogy Engine

Tracks how a piece of misinformation mutates as it spreads and organizes
every observed variant into a family tree rooted at the first-seen text.
Layers communicate only through explicit contracts.

LAYER STRUCTURE:
================

1. NORMALIZATION LAYER (normalization/)
   - Responsibility: Normalize text, hash it, canonicalize tokens
   - Allowed inputs: Plain strings
   - Outputs: ContentFingerprint, TextProfile (immutable)
   - MUST NOT: Store content, compare texts, assign families

2. CLASSIFICATION (classification/)
   - Responsibility: Label a parent -> child edge with a MutationType
   - Allowed inputs: Two texts
   - Outputs: MutationType, ChangeAnalysis
   - MUST NOT: Score similarity, touch families

3. SIMILARITY LAYER (similarity/)
   - Responsibility: Symmetric similarity, variant search, clustering
   - Allowed inputs: Plain strings or TextItems
   - Outputs: SimilarityResult, VariantMatch, TextCluster
   - MUST NOT: Decide family membership

4. STORAGE (storage/)
   - Responsibility: Key-value persistence of families and the hash index
   - MUST NOT: Execute business logic

5. CORE FAMILY REGISTRY (core/)
   - Responsibility: Ingest, create and extend families (sole writer)
   - Outputs: IngestResult, FamilyView, RegistryStatistics
   - MUST NOT: Delete or rewrite family members, raise across its surface

6. QUERY & ANALYSIS INTERFACES (query/)
   - Responsibility: Read-only genealogy queries over one family
   - Outputs: GenealogyPath, DescendantsResult, CommonAncestorResult
   - MUST NOT: Mutate state

7. PREDICTION (prediction/)
   - Responsibility: Signals over a family history -> ranked forecasts
   - Outputs: PredictionReport
   - MUST NOT: Feed predicted content back into any family

8. OBSERVABILITY & AUDIT LAYER (observability/)
   - Responsibility: Audit trail, metrics, diagnostic logging setup
   - MUST NOT: Modify system behavior

CONSTRAINTS ENFORCED:
=====================
- Append-only: family members are never deleted or rewritten
- Deterministic: ids and hashes depend only on content
- Explicit errors: the public API never raises; failures are data
- Rule-based: every classification and prediction comes from fixed rules
"""

from .engine import EngineConfig, MutationGenealogyEngine
from .contracts.base import Error, ErrorCode, IngestStatus, MutationType, SemanticCluster, Timestamp

__all__ = [
    'EngineConfig', 'MutationGenealogyEngine',
    'Error', 'ErrorCode', 'IngestStatus', 'MutationType', 'SemanticCluster', 'Timestamp',
]
