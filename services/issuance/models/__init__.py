from .issuances import Issuance, CompletedIssuance, IssuanceStatus
