"""RFP triage: guarded, schema-shaped LLM analysis of RFP documents."""

__version__ = "0.1.0"
