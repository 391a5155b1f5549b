"""
Oracle Zone - the external text-generation service.

Everything model-generated passes through here and is decoded into typed
results before it reaches session state:
- Question authoring (raises on failure)
- Answer grading (degrades to a safe default)
- Session summaries (degrade to a generic summary)
- Username moderation
"""
