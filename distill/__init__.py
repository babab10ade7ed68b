"""
Distill: summarise an audio recording and deliver the summary.

The package uploads an audio file to Cloud Storage, runs a long-running
Speech-to-Text job on it, summarises the transcript with a generative model
and prints, writes or posts the result to Slack or Teams webhooks.  The
entrypoint is :func:`distill.main.main`; the stages themselves live in
:mod:`distill.tasks`.
"""

__version__ = "0.1.0"
