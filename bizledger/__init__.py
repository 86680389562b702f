"""BizLedger - business dashboard backend with an installment payment ledger"""
