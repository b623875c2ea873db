"""Pure domain layer: lifecycle tables, severity policy, closure gate, DTOs."""
