"""The outcome library, under the names we use for task results

A Task's terminal payload is either `Success`, holding whatever its function
returned, or `Faulted`, holding the exception it raised. These are exactly
`outcome.Value` and `outcome.Error`, so `unwrap` and the rest of the outcome API
work on them unchanged.

"""
from outcome import Outcome, Value, Error

__all__ = [
    'Outcome',
    'Value',
    'Error',
    'Success',
    'Faulted',
    'is_success',
]

Success = Value
Faulted = Error

def is_success(result: Outcome) -> bool:
    return isinstance(result, Value)
