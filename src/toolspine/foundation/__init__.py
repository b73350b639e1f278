"""Foundation: errors and configuration shared by schema and runtime layers."""
