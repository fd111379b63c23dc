# main.py
import argparse
import sys

from parking_system import (CategorieVehicule, DEVISE, ErreurParking, ParkingSystem,
                            TARIF_HORAIRE_DEFAULT)


MENU = "\n1. Garer une voiture\n2. Garer une moto\n3. Sortie d'un véhicule\n4. État du parking\n5. Quitter"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Gestion d'un parking voitures / motos")

    parser.add_argument("-c", "--voitures", type=int, default=None, metavar="N",
                        help="nombre de places voitures (demandé au clavier si absent)")

    parser.add_argument("-m", "--motos", type=int, default=None, metavar="N",
                        help="nombre de places motos (demandé au clavier si absent)")

    parser.add_argument("-t", "--tarif", type=float, default=TARIF_HORAIRE_DEFAULT, metavar="TARIF",
                        help="tarif par heure entamée")

    parser.add_argument("--gui", action="store_true",
                        help="ouvre le tableau de bord PyQt5 au lieu du menu console")

    return parser.parse_args(argv)


def demander_entier(question: str) -> int:
    return int(input(question).strip())


def afficher_statut(parking: ParkingSystem) -> None:
    status = parking.get_status()
    print("\n--- État du parking ---")
    for place in status["places"]:
        etat = f"Occupée ({place['vehicule']})" if place["occupee"] else "Libre"
        print(f"Place {place['id']} ({place['categorie'].libelle}) : {etat}")
    print(f"Voitures en attente : {status['attente'][CategorieVehicule.VOITURE.value]}")
    print(f"Motos en attente : {status['attente'][CategorieVehicule.MOTO.value]}")
    print(f"Recettes : {status['recettes']} {DEVISE}")


def executer_choix(parking: ParkingSystem, choix: str) -> bool:
    """
    Exécute une entrée du menu.

    Returns:
        False quand l'utilisateur quitte, True sinon
    """
    if choix in ("1", "2"):
        categorie = CategorieVehicule.VOITURE if choix == "1" else CategorieVehicule.MOTO
        plaque = input(f"Plaque {categorie.libelle} : ").strip()
        resultat = parking.admettre(categorie, plaque)
        if resultat.en_attente:
            print(f"Aucune place libre. {plaque} en attente (position {resultat.position_attente}).")
        else:
            print(resultat.ticket)
    elif choix == "3":
        plaque = input("Plaque du véhicule : ").strip()
        sortie = parking.liberer(plaque)
        print(f"Place {sortie.id_place} libérée. Montant : {sortie.montant} {DEVISE} ({sortie.heures} h)")
        if sortie.vehicule_promu:
            print(f"{sortie.vehicule_promu} quitte la file et prend la place {sortie.ticket_promu.id_place}.")
    elif choix == "4":
        afficher_statut(parking)
    elif choix == "5":
        return False
    else:
        print("Choix invalide.")
    return True


def boucle_console(parking: ParkingSystem) -> int:
    while True:
        print(MENU)
        try:
            choix = input("Choix : ").strip()
        except EOFError:
            return 0
        try:
            if not executer_choix(parking, choix):
                return 0
        except ErreurParking as erreur:
            print(f"[Erreur] {erreur}")
        except EOFError:
            return 0


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        voitures = args.voitures if args.voitures is not None else demander_entier("Nombre de places voitures : ")
        motos = args.motos if args.motos is not None else demander_entier("Nombre de places motos : ")
    except (ValueError, EOFError):
        print("[Erreur] Nombre de places invalide.")
        return 1
    tarif = int(args.tarif) if float(args.tarif).is_integer() else args.tarif

    try:
        if args.gui:
            from gui_parking import lancer_dashboard
            return lancer_dashboard(voitures, motos, tarif)
        parking = ParkingSystem(capacite_voitures=voitures, capacite_motos=motos, tarif_horaire=tarif)
    except ErreurParking as erreur:
        print(f"[Erreur] {erreur}")
        return 1

    return boucle_console(parking)


if __name__ == "__main__":
    sys.exit(main())
