import threading

import pytest

from parking_system import (CategorieVehicule, ConfigurationInvalide, IdentifiantInvalide,
                            ParkingSystem, VehiculeDuplique, VehiculeIntrouvable)

VOITURE = CategorieVehicule.VOITURE
MOTO = CategorieVehicule.MOTO


class HorlogeFactice:
    def __init__(self, depart=1_000_000.0):
        self.maintenant = depart

    def __call__(self):
        return self.maintenant

    def avancer(self, secondes):
        self.maintenant += secondes


def nouveau_parking(voitures=2, motos=2, horloge=None):
    return ParkingSystem(capacite_voitures=voitures, capacite_motos=motos,
                         horloge=horloge or HorlogeFactice(), journal=None)


def verifier_invariants(p):
    for categorie in CategorieVehicule:
        occupees = [pl for pl in p.places if pl.categorie is categorie and pl.occupee]
        assert p.places_libres(categorie) + len(occupees) == p.capacite(categorie)
    places_tickets = [t.id_place for t in p.tickets_actifs.values()]
    assert len(places_tickets) == len(set(places_tickets))
    assert sorted(places_tickets) == sorted(pl.id_place for pl in p.places if pl.occupee)
    en_attente = {e.id_vehicule for file in p.files_attente.values() for e in file}
    assert not en_attente & set(p.tickets_actifs)


def test_initialisation():
    p = nouveau_parking(voitures=3, motos=2)
    assert [pl.id_place for pl in p.places] == [1, 2, 3, 4, 5]
    # Les voitures occupent le premier bloc, les motos le second
    assert [pl.categorie for pl in p.places] == [VOITURE] * 3 + [MOTO] * 2
    assert not any(pl.occupee for pl in p.places)
    assert p.places_libres(VOITURE) == 3
    assert p.places_libres(MOTO) == 2


def test_capacite_nulle_acceptee():
    p = nouveau_parking(voitures=0, motos=0)
    assert p.places == []
    assert p.get_status()["etat_parking"] == "COMPLET"


@pytest.mark.parametrize("voitures, motos", [(-1, 2), (2, -1), (1.5, 2), (True, 2)])
def test_configuration_invalide(voitures, motos):
    with pytest.raises(ConfigurationInvalide):
        ParkingSystem(capacite_voitures=voitures, capacite_motos=motos, journal=None)


@pytest.mark.parametrize("tarif", [-20, float("nan"), float("inf"), "20"])
def test_tarif_invalide_refuse(tarif):
    with pytest.raises(ConfigurationInvalide):
        ParkingSystem(1, 1, tarif_horaire=tarif, journal=None)


def test_attribution_plus_petite_place_libre():
    p = nouveau_parking(voitures=3, motos=2)
    assert p.admettre(VOITURE, "A").id_place == 1
    assert p.admettre(VOITURE, "B").id_place == 2
    assert p.admettre(MOTO, "M1").id_place == 4
    p.liberer("A")
    # La place 1 redevient la plus petite place libre
    assert p.admettre(VOITURE, "C").id_place == 1
    assert p.admettre(VOITURE, "D").id_place == 3
    verifier_invariants(p)


def test_admission_accepte_la_valeur_de_categorie():
    p = nouveau_parking()
    resultat = p.admettre("Bike", "M1")
    assert resultat.categorie is MOTO
    assert resultat.id_place == 3


def test_saturation_met_en_attente():
    p = nouveau_parking(voitures=1, motos=0)
    p.admettre(VOITURE, "A")

    resultat = p.admettre(VOITURE, "B")
    assert resultat.en_attente
    assert resultat.position_attente == 1
    assert p.get_ticket("B") is None
    assert p.etat_vehicule("B") == "EN_ATTENTE"

    assert p.admettre(VOITURE, "C").position_attente == 2
    assert p.position_attente("C") == 2
    verifier_invariants(p)


def test_files_separees_par_categorie():
    p = nouveau_parking(voitures=1, motos=1)
    p.admettre(VOITURE, "A")
    p.admettre(VOITURE, "B")
    # La file voitures n'empêche pas une moto de se garer
    assert p.admettre(MOTO, "M1").id_place == 2
    assert p.get_status()["attente"] == {"Car": 1, "Bike": 0}


def test_vehicule_duplique_gare():
    p = nouveau_parking()
    p.admettre(VOITURE, "A")
    avant = p.get_status()
    with pytest.raises(VehiculeDuplique):
        p.admettre(MOTO, "A")
    assert p.get_status() == avant


def test_vehicule_duplique_en_attente():
    p = nouveau_parking(voitures=1, motos=0)
    p.admettre(VOITURE, "A")
    p.admettre(VOITURE, "B")
    with pytest.raises(VehiculeDuplique):
        p.admettre(VOITURE, "B")
    assert p.get_status()["attente"]["Car"] == 1


@pytest.mark.parametrize("plaque", ["", "   "])
def test_plaque_vide_refusee(plaque):
    p = nouveau_parking()
    with pytest.raises(IdentifiantInvalide):
        p.admettre(VOITURE, plaque)
    # Refus d'admission : attrapable comme un doublon
    with pytest.raises(VehiculeDuplique):
        p.admettre(VOITURE, plaque)
    assert p.tickets_actifs == {}


def test_sortie_vehicule_inconnu():
    p = nouveau_parking(voitures=1, motos=0)
    p.admettre(VOITURE, "A")
    p.admettre(VOITURE, "B")
    avant = p.get_status()
    with pytest.raises(VehiculeIntrouvable):
        p.liberer("Z")
    assert p.get_status() == avant


def test_sortie_vehicule_en_attente_introuvable():
    # Un véhicule en file n'a pas de ticket : il ne peut pas sortir
    p = nouveau_parking(voitures=1, motos=0)
    p.admettre(VOITURE, "A")
    p.admettre(VOITURE, "B")
    with pytest.raises(VehiculeIntrouvable):
        p.liberer("B")
    assert p.etat_vehicule("B") == "EN_ATTENTE"


@pytest.mark.parametrize("duree, heures", [
    (0, 1),
    (1, 1),
    (3599, 1),
    (3600, 1),
    (3601, 2),
    (61 * 60, 2),
    (5 * 3600, 5),
])
def test_tarif_heure_entamee(duree, heures):
    horloge = HorlogeFactice()
    p = nouveau_parking(horloge=horloge)
    p.admettre(VOITURE, "A")
    horloge.avancer(duree)
    sortie = p.liberer("A")
    assert sortie.heures == heures
    assert sortie.montant == heures * 20


def test_tarif_personnalise():
    horloge = HorlogeFactice()
    p = ParkingSystem(1, 0, tarif_horaire=2.5, horloge=horloge, journal=None)
    p.admettre(VOITURE, "A")
    horloge.avancer(2 * 3600 + 10)
    assert p.liberer("A").montant == 7.5


def test_scenario_promotion_file_attente():
    horloge = HorlogeFactice()
    p = nouveau_parking(voitures=1, motos=0, horloge=horloge)

    assert p.admettre(VOITURE, "A").id_place == 1
    assert p.etat_vehicule("A") == "GARE"
    assert p.admettre(VOITURE, "B").position_attente == 1

    horloge.avancer(1)
    sortie = p.liberer("A")
    assert sortie.id_place == 1
    assert sortie.montant == 20
    assert sortie.vehicule_promu == "B"
    assert sortie.ticket_promu.id_place == 1

    status = p.get_status()
    assert status["places"] == [{"id": 1, "categorie": VOITURE, "occupee": True, "vehicule": "B"}]
    assert status["attente"] == {"Car": 0, "Bike": 0}
    assert p.etat_vehicule("A") == "NON_VU"
    assert p.etat_vehicule("B") == "GARE"
    verifier_invariants(p)


def test_promotion_respecte_ordre_fifo():
    p = nouveau_parking(voitures=1, motos=0)
    p.admettre(VOITURE, "A")
    for plaque in ("B", "C", "D"):
        p.admettre(VOITURE, plaque)

    assert p.liberer("A").vehicule_promu == "B"
    assert p.position_attente("C") == 1
    assert p.liberer("B").vehicule_promu == "C"
    assert p.liberer("C").vehicule_promu == "D"
    assert p.liberer("D").vehicule_promu is None
    assert p.places_libres(VOITURE) == 1


def test_sortie_moto_ne_promeut_pas_voiture():
    p = nouveau_parking(voitures=1, motos=1)
    p.admettre(VOITURE, "A")
    p.admettre(VOITURE, "B")
    p.admettre(MOTO, "M1")
    sortie = p.liberer("M1")
    assert sortie.vehicule_promu is None
    assert p.etat_vehicule("B") == "EN_ATTENTE"
    assert p.places_libres(MOTO) == 1


def test_ids_tickets_strictement_croissants():
    p = nouveau_parking(voitures=1, motos=1)
    ids = [p.admettre(VOITURE, "A").ticket.id_ticket]
    p.admettre(VOITURE, "B")
    ids.append(p.liberer("A").ticket_promu.id_ticket)
    ids.append(p.admettre(MOTO, "M1").ticket.id_ticket)
    p.liberer("M1")
    p.liberer("B")
    # Un véhicule revenu reçoit un nouveau ticket
    ids.append(p.admettre(VOITURE, "A").ticket.id_ticket)
    assert ids == [1, 2, 3, 4]


def test_vehicule_peut_revenir_apres_sortie():
    p = nouveau_parking()
    p.admettre(VOITURE, "A")
    p.liberer("A")
    # Même plaque, autre catégorie : accepté une fois sorti
    assert p.admettre(MOTO, "A").id_place == 3


def test_recettes_et_compteurs():
    horloge = HorlogeFactice()
    p = nouveau_parking(voitures=1, motos=1, horloge=horloge)
    p.admettre(VOITURE, "A")
    p.admettre(VOITURE, "B")
    p.admettre(MOTO, "M1")
    horloge.avancer(3601)
    p.liberer("A")
    p.liberer("M1")

    status = p.get_status()
    assert status["recettes"] == 80
    assert status["total_entrees"] == {"Car": 2, "Bike": 1}
    assert status["total_sorties"] == 2
    assert status["tickets_actifs"] == 1


def test_status_sans_effet_de_bord():
    p = nouveau_parking(voitures=1, motos=1)
    p.admettre(MOTO, "M1")
    assert p.get_status() == p.get_status()
    status = p.get_status()
    assert status["places_libres"] == {"Car": 1, "Bike": 0}
    assert status["etat_parking"] == "DISPONIBLE"
    p.admettre(VOITURE, "A")
    assert p.get_status()["etat_parking"] == "COMPLET"


def test_invariants_sur_sequence_longue():
    horloge = HorlogeFactice()
    p = nouveau_parking(voitures=3, motos=2, horloge=horloge)
    garees = []
    for i in range(12):
        categorie = VOITURE if i % 3 else MOTO
        resultat = p.admettre(categorie, f"V{i}")
        if not resultat.en_attente:
            garees.append(resultat.id_vehicule)
        verifier_invariants(p)
    while p.tickets_actifs:
        horloge.avancer(900)
        plaque = sorted(p.tickets_actifs)[0]
        p.liberer(plaque)
        verifier_invariants(p)
    assert p.get_status()["attente"] == {"Car": 0, "Bike": 0}
    assert p.etats_vehicules == {}


def test_ticket_texte():
    p = nouveau_parking()
    ticket = p.admettre(VOITURE, "AB-123").ticket
    texte = str(ticket)
    assert texte.startswith("Ticket #1 | Voiture AB-123 | Place 1")


def test_journal_trace_les_evenements():
    messages = []
    p = ParkingSystem(1, 0, horloge=HorlogeFactice(), journal=messages.append)
    p.admettre(VOITURE, "A")
    p.admettre(VOITURE, "B")
    p.liberer("A")
    assert messages[0].startswith("[ParkingSystem] Initialisé : 1 places")
    assert any(m.startswith("[Attente]") and "B" in m for m in messages)
    assert any(m.startswith("[Sortie]") for m in messages)
    assert "[Transition] B 'place_liberee': EN_ATTENTE -> GARE" in messages


def test_plaque_normalisee():
    p = nouveau_parking()
    assert p.admettre(VOITURE, " A ").id_vehicule == "A"
    with pytest.raises(VehiculeDuplique):
        p.admettre(VOITURE, "A")
    assert list(p.tickets_actifs) == ["A"]
    assert p.liberer("A ").id_place == 1


def test_acces_concurrents_coherents():
    p = nouveau_parking(voitures=3, motos=2)
    erreurs = []

    def client(n):
        categorie = VOITURE if n % 2 else MOTO
        try:
            for i in range(300):
                plaque = f"T{n}-{i}"
                resultat = p.admettre(categorie, plaque)
                if resultat.en_attente:
                    continue
                promu = p.liberer(plaque).vehicule_promu
                # Le client qui libère une place fait aussi sortir le véhicule promu
                while promu:
                    promu = p.liberer(promu).vehicule_promu
                p.get_status()
        except Exception as erreur:
            erreurs.append(erreur)

    clients = [threading.Thread(target=client, args=(n,)) for n in range(8)]
    for t in clients:
        t.start()
    for t in clients:
        t.join()

    assert erreurs == []
    verifier_invariants(p)
    assert len(p.tickets_actifs) == sum(pl.occupee for pl in p.places)
