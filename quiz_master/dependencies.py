# dependencies.py
from fastapi import Request

from .identity import SupabaseIdentity
from .storage import QuizStorage

def get_storage(request: Request) -> QuizStorage:
    return request.app.state.storage

def get_identity(request: Request) -> SupabaseIdentity:
    return request.app.state.identity
