"""Pipeline orchestration components for the posterGraph extraction pipeline.

The processor lives in :mod:`src.pipeline.orchestrator`; it is not
re-exported here because the services it wires import
:mod:`src.pipeline.phases` themselves.
"""
