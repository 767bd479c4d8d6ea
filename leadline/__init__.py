"""
Leadline call core
Telnyx call-control webhooks, outbound calling and follow-up scheduling
"""
