"""
Pipeline Services

External clients (Apify, Gemini, Telegram), the failure policy and the
advance controller. Stage handlers live in services.stages.
"""
