"""
Session helpers shared by the DAOs and the service layer.

- transactionManagement
    ``@transactional`` and the ``db_session_context`` variable it uses to
    hand one session to every nested service call of a transaction.
"""
