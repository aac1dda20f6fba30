"""Catalog intake: resilient intent extraction and staged catalog reconciliation.

Caller-facing entry points:
  - ``IntentExtractionPipeline.extract_intent`` / ``extract_intent_safe``
  - ``StagedBulkWriter.write``
  - ``ReconciliationExecutor.reconcile``
"""

__version__ = "0.1.0"
