"""Device management protocol: header codec, command registry, SMP and OMP servers, and OS, shell and statistics command groups."""

__version__ = "0.1.0"

__all__ = ["mgmt", "util", "smp", "omp", "os_mgmt", "shell_mgmt", "stat_mgmt"]