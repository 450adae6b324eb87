"""Employees module — Employee records, hierarchy and lifecycle."""

from hrms.employees.models import Employee, EmployeeStatusHistory

__all__ = ["Employee", "EmployeeStatusHistory"]
