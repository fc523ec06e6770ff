"""USDT/JOD custodial exchange backend."""
