"""Remote recovery actions for the monitored endpoint."""

from .azure_vm import AzureAuthError, AzureVMRecoveryAction, RecoveryOutcome, start_vm

__all__ = ["AzureAuthError", "AzureVMRecoveryAction", "RecoveryOutcome", "start_vm"]
