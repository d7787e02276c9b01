"""Trace export verification harness for auto-instrumented applications."""
