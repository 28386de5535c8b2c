"""
Pipelines — Kubeflow Pipelines (KFP v2) durable ingestion.

Each ingestion step is a ``@kfp.dsl.component`` running on the project
image, so the step bodies call straight into :mod:`sales_rag`.
"""
