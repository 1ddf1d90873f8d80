"""Study hall membership core.

This package is organized by feature modules (seats, members, billing,
attendance, notifications) with a thin Flask controller layer on top of
service/repository layers. All shared state lives in a document store.
"""
