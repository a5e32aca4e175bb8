from engagement.letters.models import Client, EngagementLetter
from engagement.letters.repository import ClientRepository, LetterRepository, client_repository, letter_repository

__all__ = [
    "Client",
    "EngagementLetter",
    "ClientRepository",
    "LetterRepository",
    "client_repository",
    "letter_repository",
]
