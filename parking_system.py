import heapq
import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional, Union

from automate_base import Automate, Etat
from tarification import calculer_heures, calculer_montant


# Constantes de configuration
CAPACITE_VOITURES_DEFAULT = 5
CAPACITE_MOTOS_DEFAULT = 5
TARIF_HORAIRE_DEFAULT = 20
DEVISE = "Rs"

# Cycle de vie d'un véhicule
NON_VU = 0
EN_ATTENTE = 1
GARE = 2


class CategorieVehicule(Enum):
    VOITURE = "Car"
    MOTO = "Bike"

    @property
    def libelle(self) -> str:
        return "Voiture" if self is CategorieVehicule.VOITURE else "Moto"


class ErreurParking(Exception):
    """Erreur métier du parking. Jamais fatale : l'appelant affiche et continue."""


class ConfigurationInvalide(ErreurParking):
    pass


class VehiculeDuplique(ErreurParking):
    """Admission refusée : le véhicule est déjà garé ou déjà en file d'attente."""


class IdentifiantInvalide(VehiculeDuplique):
    """Admission refusée : plaque vide."""


class VehiculeIntrouvable(ErreurParking):
    pass


class Place:
    """
    Place physique de stationnement.

    Attributes:
        id_place: Numéro de la place (à partir de 1)
        categorie: Catégorie de véhicule acceptée
        occupee: True si un ticket actif référence cette place
    """

    def __init__(self, id_place: int, categorie: CategorieVehicule) -> None:
        self.id_place = id_place
        self.categorie = categorie
        self.occupee = False

    def occuper(self) -> None:
        self.occupee = True

    def liberer(self) -> None:
        self.occupee = False

    def __repr__(self) -> str:
        etat = "Occupée" if self.occupee else "Libre"
        return f"Place({self.id_place} {self.categorie.value}: {etat})"


@dataclass(frozen=True)
class Ticket:
    id_ticket: int
    id_place: int
    id_vehicule: str
    categorie: CategorieVehicule
    heure_entree: float

    def __str__(self) -> str:
        entree = time.strftime("%d/%m/%Y %H:%M:%S", time.localtime(self.heure_entree))
        return (f"Ticket #{self.id_ticket} | {self.categorie.libelle} {self.id_vehicule} "
                f"| Place {self.id_place} | Entrée {entree}")


@dataclass(frozen=True)
class EntreeAttente:
    categorie: CategorieVehicule
    id_vehicule: str


@dataclass(frozen=True)
class ResultatAdmission:
    id_vehicule: str
    categorie: CategorieVehicule
    id_place: Optional[int] = None
    ticket: Optional[Ticket] = None
    position_attente: Optional[int] = None

    @property
    def en_attente(self) -> bool:
        return self.id_place is None


@dataclass(frozen=True)
class ResultatSortie:
    id_vehicule: str
    id_place: int
    heures: int
    montant: float
    ticket: Ticket
    vehicule_promu: Optional[str] = None
    ticket_promu: Optional[Ticket] = None


class ParkingSystem:
    """
    Moteur d'attribution des places d'un parking à deux catégories.

    Les places voitures portent les numéros 1..capacite_voitures, les places
    motos suivent. Une place libre est toujours attribuée par numéro croissant.
    Quand une catégorie est pleine, les véhicules attendent dans une file FIFO
    propre à cette catégorie ; chaque sortie donne immédiatement la place
    libérée au premier véhicule de la file.

    Attributes:
        places: Toutes les places, indexées par id_place - 1
        tarif_horaire: Montant facturé par heure entamée
        tickets_actifs: Tickets en cours {plaque: Ticket}
        files_attente: Files d'attente par catégorie
        etats_vehicules: État du cycle de vie des véhicules suivis {plaque: id_etat}
        recettes_totales: Montant total encaissé
        total_entrees: Nombre de véhicules garés par catégorie
        total_sorties: Nombre de sorties
        automate: Définition du cycle de vie NON_VU -> EN_ATTENTE -> GARE
    """

    def __init__(self, capacite_voitures: int = CAPACITE_VOITURES_DEFAULT,
                 capacite_motos: int = CAPACITE_MOTOS_DEFAULT,
                 tarif_horaire: float = TARIF_HORAIRE_DEFAULT,
                 horloge: Callable[[], float] = time.time,
                 journal: Optional[Callable[[str], None]] = print) -> None:
        self._valider_capacite("voitures", capacite_voitures)
        self._valider_capacite("motos", capacite_motos)
        if (isinstance(tarif_horaire, bool) or not isinstance(tarif_horaire, (int, float))
                or not math.isfinite(tarif_horaire) or tarif_horaire < 0):
            raise ConfigurationInvalide(f"Tarif horaire invalide : {tarif_horaire!r}")

        self.tarif_horaire = tarif_horaire
        self.horloge = horloge
        self.journal = journal

        self.places: List[Place] = []
        self._capacites: Dict[CategorieVehicule, int] = {
            CategorieVehicule.VOITURE: capacite_voitures,
            CategorieVehicule.MOTO: capacite_motos,
        }
        self._places_libres: Dict[CategorieVehicule, List[int]] = {}
        for categorie in CategorieVehicule:
            libres = []
            for _ in range(self._capacites[categorie]):
                place = Place(len(self.places) + 1, categorie)
                self.places.append(place)
                libres.append(place.id_place)
            # ids croissants : la liste est déjà un tas valide
            self._places_libres[categorie] = libres

        self.files_attente: Dict[CategorieVehicule, Deque[EntreeAttente]] = {
            categorie: deque() for categorie in CategorieVehicule
        }
        self.tickets_actifs: Dict[str, Ticket] = {}
        self.etats_vehicules: Dict[str, int] = {}
        self._compteur_tickets = 1

        self.recettes_totales = 0
        self.total_entrees = {categorie: 0 for categorie in CategorieVehicule}
        self.total_sorties = 0

        self._verrou = threading.RLock()
        self.automate = Automate(journal=journal)
        self._construire_automate()
        self._tracer(f"[ParkingSystem] Initialisé : {len(self.places)} places "
                     f"({capacite_voitures} voitures, {capacite_motos} motos).")

    @staticmethod
    def _valider_capacite(nom: str, valeur: int) -> None:
        if isinstance(valeur, bool) or not isinstance(valeur, int) or valeur < 0:
            raise ConfigurationInvalide(f"Capacité {nom} invalide : {valeur!r}")

    def _construire_automate(self) -> None:
        """Construit le cycle de vie d'un véhicule."""
        for etat in (Etat(NON_VU, "NON_VU", "initial"),
                     Etat(EN_ATTENTE, "EN_ATTENTE"),
                     Etat(GARE, "GARE")):
            self.automate.ajouter_etat(etat)

        self.automate.ajouter_transition(NON_VU, GARE, "place_attribuee")
        self.automate.ajouter_transition(NON_VU, EN_ATTENTE, "parking_plein")
        self.automate.ajouter_transition(EN_ATTENTE, GARE, "place_liberee")
        self.automate.ajouter_transition(GARE, NON_VU, "vehicule_sorti")

    def _tracer(self, message: str) -> None:
        if self.journal:
            self.journal(message)

    def _faire_transition(self, id_vehicule: str, evt: str) -> None:
        courant = self.etats_vehicules.get(id_vehicule, NON_VU)
        nouveau = self.automate.transition(courant, evt, sujet=id_vehicule)
        if nouveau is None:
            raise RuntimeError(f"Cycle de vie incohérent pour {id_vehicule} ({evt})")
        if nouveau == NON_VU:
            del self.etats_vehicules[id_vehicule]
        else:
            self.etats_vehicules[id_vehicule] = nouveau

    def _garer(self, categorie: CategorieVehicule, id_vehicule: str, evt: str) -> ResultatAdmission:
        self._faire_transition(id_vehicule, evt)

        id_place = heapq.heappop(self._places_libres[categorie])
        self.places[id_place - 1].occuper()

        ticket = Ticket(self._compteur_tickets, id_place, id_vehicule, categorie, self.horloge())
        self._compteur_tickets += 1
        self.tickets_actifs[id_vehicule] = ticket
        self.total_entrees[categorie] += 1

        self._tracer(f"[Succès] {categorie.libelle} {id_vehicule} garée place {id_place} "
                     f"(ticket #{ticket.id_ticket}).")
        return ResultatAdmission(id_vehicule, categorie, id_place=id_place, ticket=ticket)

    def admettre(self, categorie: Union[CategorieVehicule, str], id_vehicule: str) -> ResultatAdmission:
        """
        Gère l'arrivée d'un véhicule.

        Args:
            categorie: Catégorie du véhicule (ou sa valeur, "Car" / "Bike")
            id_vehicule: Plaque du véhicule

        Returns:
            Le résultat d'admission : place attribuée, ou position dans la file

        Raises:
            IdentifiantInvalide: si la plaque est vide
            VehiculeDuplique: si le véhicule est déjà garé ou en attente
        """
        categorie = CategorieVehicule(categorie)
        if not isinstance(id_vehicule, str) or not id_vehicule.strip():
            raise IdentifiantInvalide("La plaque du véhicule est vide.")
        id_vehicule = id_vehicule.strip()

        with self._verrou:
            if id_vehicule in self.etats_vehicules:
                deja = "garé" if self.etats_vehicules[id_vehicule] == GARE else "en file d'attente"
                raise VehiculeDuplique(f"Le véhicule {id_vehicule} est déjà {deja}.")

            if self._places_libres[categorie]:
                return self._garer(categorie, id_vehicule, "place_attribuee")

            self._faire_transition(id_vehicule, "parking_plein")
            file = self.files_attente[categorie]
            file.append(EntreeAttente(categorie, id_vehicule))
            self._tracer(f"[Attente] Aucune place {categorie.libelle} libre. "
                         f"{id_vehicule} en file d'attente (position {len(file)}).")
            return ResultatAdmission(id_vehicule, categorie, position_attente=len(file))

    def liberer(self, id_vehicule: str) -> ResultatSortie:
        """
        Gère la sortie d'un véhicule garé et promeut le premier véhicule en attente.

        Args:
            id_vehicule: Plaque du véhicule

        Returns:
            La place libérée, le montant dû et le véhicule éventuellement promu

        Raises:
            VehiculeIntrouvable: si aucun ticket actif ne correspond à la plaque
        """
        id_vehicule = id_vehicule.strip()
        with self._verrou:
            ticket = self.tickets_actifs.get(id_vehicule)
            if ticket is None:
                raise VehiculeIntrouvable(f"Véhicule {id_vehicule} introuvable.")

            heures = calculer_heures(ticket.heure_entree, self.horloge())
            montant = calculer_montant(heures, self.tarif_horaire)

            self._faire_transition(id_vehicule, "vehicule_sorti")
            del self.tickets_actifs[id_vehicule]
            place = self.places[ticket.id_place - 1]
            place.liberer()
            heapq.heappush(self._places_libres[place.categorie], place.id_place)

            self.recettes_totales += montant
            self.total_sorties += 1
            self._tracer(f"[Sortie] {id_vehicule} a quitté la place {place.id_place}. "
                         f"Montant : {montant} {DEVISE} ({heures} h).")

            promu = None
            file = self.files_attente[place.categorie]
            if file:
                suivant = file.popleft()
                promu = self._garer(suivant.categorie, suivant.id_vehicule, "place_liberee")

            return ResultatSortie(
                id_vehicule=id_vehicule,
                id_place=place.id_place,
                heures=heures,
                montant=montant,
                ticket=ticket,
                vehicule_promu=promu.id_vehicule if promu else None,
                ticket_promu=promu.ticket if promu else None,
            )

    def get_status(self) -> dict:
        """
        Retourne un instantané de l'état du parking, sans effet de bord.

        Returns:
            Dictionnaire contenant les places, les files et les statistiques
        """
        with self._verrou:
            occupants = {t.id_place: t.id_vehicule for t in self.tickets_actifs.values()}
            libres = {c.value: len(self._places_libres[c]) for c in CategorieVehicule}
            return {
                "etat_parking": "DISPONIBLE" if any(libres.values()) else "COMPLET",
                "places": [
                    {
                        "id": place.id_place,
                        "categorie": place.categorie,
                        "occupee": place.occupee,
                        "vehicule": occupants.get(place.id_place),
                    }
                    for place in self.places
                ],
                "attente": {c.value: len(self.files_attente[c]) for c in CategorieVehicule},
                "places_libres": libres,
                "tickets_actifs": len(self.tickets_actifs),
                "recettes": self.recettes_totales,
                "total_entrees": {c.value: n for c, n in self.total_entrees.items()},
                "total_sorties": self.total_sorties,
            }

    def capacite(self, categorie: CategorieVehicule) -> int:
        return self._capacites[CategorieVehicule(categorie)]

    def places_libres(self, categorie: CategorieVehicule) -> int:
        with self._verrou:
            return len(self._places_libres[CategorieVehicule(categorie)])

    def get_ticket(self, id_vehicule: str) -> Optional[Ticket]:
        with self._verrou:
            return self.tickets_actifs.get(id_vehicule)

    def etat_vehicule(self, id_vehicule: str) -> str:
        with self._verrou:
            return self.automate.label(self.etats_vehicules.get(id_vehicule, NON_VU))

    def position_attente(self, id_vehicule: str) -> Optional[int]:
        """Position (à partir de 1) dans la file d'attente, None si le véhicule n'attend pas."""
        with self._verrou:
            for file in self.files_attente.values():
                for position, entree in enumerate(file, start=1):
                    if entree.id_vehicule == id_vehicule:
                        return position
            return None
