from math import ceil


SECONDES_PAR_HEURE = 3600
HEURES_MINIMUM = 1


def calculer_heures(debut: float, fin: float) -> int:
    """
    Nombre d'heures facturées entre l'entrée et la sortie.

    Toute heure entamée est due, avec un minimum d'une heure même pour un
    passage quasi instantané (1 s et 3600 s valent 1 h, 3601 s valent 2 h).
    """
    duree = max(0.0, fin - debut)
    return max(HEURES_MINIMUM, ceil(duree / SECONDES_PAR_HEURE))


def calculer_montant(heures: int, tarif_horaire: float) -> float:
    return heures * tarif_horaire
