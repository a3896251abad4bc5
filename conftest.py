pytest_plugins = [
    "stockledger.tests.fixtures",
]
