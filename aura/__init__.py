"""AURA ambient care engine.

Turns continuous behavioural signals into bounded risk scores, selects an
escalating intervention, explains the decision and optionally enriches the
messages with text from a remote chat-completions service.
"""
