from typing import Callable, Dict, List, Optional


class Etat:
    """
    Représente un état dans l'automate fini.

    Attributes:
        id_etat: Identifiant unique de l'état
        label_etat: Nom lisible de l'état
        type_etat: Type d'état ("initial", "final", "normal")
        transitions: Dictionnaire des transitions possibles {événement: id_destination}
    """

    def __init__(self, id_etat: int, label_etat: str, type_etat: str = "normal") -> None:
        self.id_etat = id_etat
        self.label_etat = label_etat
        self.type_etat = type_etat
        self.transitions: Dict[str, int] = {}

    def __repr__(self) -> str:
        return f"Etat({self.id_etat}: {self.label_etat} [{self.type_etat}])"


class Transition:
    """Passage d'un état à un autre via un événement."""

    def __init__(self, etat_source: Etat, etat_dest: Etat, etiquette: str) -> None:
        self.etat_source = etat_source
        self.etat_dest = etat_dest
        self.etiquette = etiquette


class Automate:
    """
    Moteur générique de l'automate à états finis.

    L'automate ne porte que la structure (états et transitions). L'état courant
    est conservé par l'appelant, ce qui permet de suivre un cycle de vie
    distinct pour chaque véhicule avec une seule définition.

    Attributes:
        list_etats: Dictionnaire des états {id: Etat}
        list_transitions: Liste de toutes les transitions
        etat_initial: État de départ de chaque cycle
        journal: Fonction de trace (print par défaut, None pour silence)
    """

    def __init__(self, journal: Optional[Callable[[str], None]] = print) -> None:
        self.list_etats: Dict[int, Etat] = {}
        self.list_transitions: List[Transition] = []
        self.etat_initial: Optional[Etat] = None
        self.journal = journal

    def _tracer(self, message: str) -> None:
        if self.journal:
            self.journal(message)

    def ajouter_etat(self, etat: Etat) -> None:
        """
        Enregistre un nouvel état dans le système.

        Args:
            etat: L'objet Etat à ajouter
        """
        self.list_etats[etat.id_etat] = etat
        if etat.type_etat == "initial":
            self.etat_initial = etat

    def ajouter_transition(self, id_src: int, id_dst: int, evt: str) -> None:
        """
        Crée une transition logique entre deux états existants.

        Args:
            id_src: ID de l'état source
            id_dst: ID de l'état destination
            evt: Événement déclencheur

        Raises:
            KeyError: si l'un des deux états n'est pas enregistré
        """
        if id_src not in self.list_etats or id_dst not in self.list_etats:
            raise KeyError(f"État source {id_src} ou destination {id_dst} inexistant.")

        src = self.list_etats[id_src]
        dst = self.list_etats[id_dst]
        self.list_transitions.append(Transition(src, dst, evt))
        src.transitions[evt] = id_dst

    def label(self, id_etat: int) -> str:
        return self.list_etats[id_etat].label_etat

    def transition(self, id_courant: int, evt: str, sujet: str = "") -> Optional[int]:
        """
        Tente d'exécuter une transition depuis l'état donné.

        Args:
            id_courant: ID de l'état de départ
            evt: Événement déclencheur
            sujet: Identifiant affiché dans la trace (plaque du véhicule)

        Returns:
            L'ID du nouvel état, ou None si l'événement est impossible
        """
        courant = self.list_etats[id_courant]
        prefixe = f"{sujet} " if sujet else ""
        if evt not in courant.transitions:
            self._tracer(f"[Bloqué] {prefixe}Événement '{evt}' impossible depuis l'état '{courant.label_etat}'")
            return None

        dst_id = courant.transitions[evt]
        self._tracer(f"[Transition] {prefixe}'{evt}': {courant.label_etat} -> {self.label(dst_id)}")
        return dst_id
