"""Infrastructure Layer for the account security subsystem.

Concrete implementations of the application layer interfaces and the
services behind them:
- auth: password hashing and policy, TOTP and backup codes, the session
  registry, password rotation, MFA enrollment and the MFA enforcement gate
- repositories: in-memory, SQLAlchemy and Redis stores
- concurrency: per-account locks
- monitoring: structured logging with sensitive data masking
- config: environment driven settings
- container: dependency wiring

Example usage:
    from src.infrastructure.container import get_container
    from src.application.services import AccountSecurityService

    container = get_container()
    service = container.get(AccountSecurityService)
    result = await service.start_enrollment("acct-1", "authenticator_app")
"""
