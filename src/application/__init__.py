"""
Application Layer - Use Cases and Orchestration

This layer contains:
- Interfaces: Storage and delivery contracts implemented by infrastructure
- Use Cases: One per management operation, returning OperationResult
- Services: The AccountSecurityService facade used by the management API

Depends on the domain layer; defines the interfaces the infrastructure
layer must implement.
"""
