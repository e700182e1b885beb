"""
Transaction module.

Handles parameter resolution, transaction construction, signing, submission
and confirmation tracking.
"""

from txsender.tx.builder import TransactionBuilder
from txsender.tx.params import NetworkParams, ParameterFetcher, ParameterFetchError
from txsender.tx.signer import KeystoreSigner, SigningError
from txsender.tx.submitter import ConfirmationWait, SubmissionTracker, WaitTimeoutError

__all__ = [
    "TransactionBuilder",
    "NetworkParams",
    "ParameterFetcher",
    "ParameterFetchError",
    "KeystoreSigner",
    "SigningError",
    "ConfirmationWait",
    "SubmissionTracker",
    "WaitTimeoutError",
]
