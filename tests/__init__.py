"""
Crawler Lambdas Tests

- test_resolved.py / test_policy.py: handles and policy documents
- test_identity.py, test_compute.py, test_schedule.py: resource builders
- test_composition.py: ordering, suspension and failure of a composition
- test_component.py: the Pulumi component against Pulumi's test mocks
"""
