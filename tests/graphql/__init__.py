"""GraphQL integration tests."""
