"""
Core types shared by connectors and the choice engine.

- ports.py: messages, output channel and repository/model protocols
- roles.py: OWNER/ADMIN/NONE roles and resolvers
- state.py: AppState container built by cli/bootstrap.py
"""
