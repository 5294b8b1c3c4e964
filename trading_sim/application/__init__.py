"""
Application Layer - Use cases, collaborator contracts and orchestration services
"""
