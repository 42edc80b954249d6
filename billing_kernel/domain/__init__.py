"""Pure domain layer: value objects, DTOs, clock, calendar helpers."""
