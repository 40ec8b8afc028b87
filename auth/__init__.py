"""auth/ -- Credential lifecycle and session state machine for FediSession.

Layer rule: auth/ imports from core/ and cache/. core/ never imports from
auth/; main.py is the only caller above this layer.
"""
