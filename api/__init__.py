"""API routers for the studio payroll backend."""
