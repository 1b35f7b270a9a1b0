"""
Core application engine.

This package contains the primary logic: the asset-name attribute parser, the
filter engine, the event channel, and the `PipelineOrchestrator` that runs the
download-then-extract sequence in the background.
"""
