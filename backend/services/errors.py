"""
Efficience Analytics - Erreurs métier

Chaque erreur porte le code HTTP renvoyé par l'API.
Les routes laissent remonter ces erreurs, server.py les convertit en JSON.
"""


class AnalyticsError(Exception):
    status_code = 500

    def __init__(self, message: str = "Erreur serveur."):
        super().__init__(message)
        self.message = message


class InvalidInputError(AnalyticsError):
    """Champ requis manquant ou mal formé (ex: mois invalide)"""
    status_code = 400


class UnauthorizedError(AnalyticsError):
    status_code = 401


class ForbiddenError(AnalyticsError):
    status_code = 403


class NotFoundError(AnalyticsError):
    """Praticien, rapport ou patient inconnu"""
    status_code = 404


class UpstreamFailureError(AnalyticsError):
    """Échec d'un collaborateur externe (rendu PDF, transport email)"""
    status_code = 502


class PersistenceFailureError(AnalyticsError):
    """Base de données indisponible"""
    status_code = 500
