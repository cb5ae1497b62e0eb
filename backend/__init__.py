"""
OrgFlow Backend

Server side of the org-chart / WBS editor. Layers communicate only through
the records and result types in contracts/, never through shared mutable
state.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Responsibility: NodeRecord, ChartMeta, error codes, audit entries
   - MUST NOT: Import from any other layer

2. DOCUMENT STORAGE LAYER (storage/)
   - Responsibility: Path-addressed documents, batched all-or-nothing writes
   - Allowed inputs: JSON-compatible documents
   - Outputs: Document copies
   - MUST NOT: Interpret node content or cascade deletes

3. CORE STRUCTURE (core/)
   - Responsibility: Tree building, flatten/export, outline parsing
   - Allowed inputs: NodeRecords, outline text
   - Outputs: TreeNodes, export dicts, parsed records
   - MUST NOT: Touch storage or session state

4. CHART PERSISTENCE LAYER (charts/)
   - Responsibility: Chart and node operations, chunked batches, metadata
   - Allowed inputs: NodeRecords, partial field maps, id sets
   - Outputs: NodeRecords, ChartMeta
   - MUST NOT: Enforce tree invariants (the editing session does)

5. OBSERVABILITY & AUDIT LAYER (observability/)
   - Responsibility: Logging setup, append-only audit trail
   - MUST NOT: Modify system behavior

6. API (api/)
   - Responsibility: HTTP mapping of the chart persistence layer
   - MUST NOT: Hold chart state between requests

CONSTRAINTS ENFORCED:
=====================
- Explicit errors: not-found, validation and storage failures are distinct
- Batched writes never exceed the store's per-commit limit
- Chart metadata changes in the same batch as the node writes behind it
"""
