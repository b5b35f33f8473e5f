"""
HTTP shell for AuthVault.

Routers are mounted by ``web.app.create_app``; the engine itself lives in
``authvault.auth.service`` and never imports from here.
"""
