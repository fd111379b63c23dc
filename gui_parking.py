import sys
import random
import time
import networkx as nx
from matplotlib.backends.backend_qt5agg import FigureCanvasQTAgg as FigureCanvas
from matplotlib.figure import Figure
from matplotlib.lines import Line2D
from PyQt5.QtWidgets import (QApplication, QMainWindow, QWidget, QVBoxLayout,
                             QHBoxLayout, QGridLayout, QLabel, QPushButton,
                             QTextEdit, QFrame, QStackedWidget, QLineEdit)
from PyQt5.QtCore import Qt, pyqtSignal, QObject, QTimer
from PyQt5.QtGui import QFont

from parking_system import (CategorieVehicule, DEVISE, ErreurParking, ParkingSystem,
                            TARIF_HORAIRE_DEFAULT)


COLONNES_GRILLE = 5
ICONES = {CategorieVehicule.VOITURE: "🚗", CategorieVehicule.MOTO: "🏍"}

STYLE_LIBRE = """
    background-color: #10b981;
    color: white;
    border-radius: 8px;
    border: 2px solid #059669;
"""
STYLE_OCCUPEE = """
    background-color: #f43f5e;
    color: white;
    border-radius: 8px;
    border: 2px solid #e11d48;
    font-size: 11px;
"""
STYLE_PAIEMENT = """
    background-color: #f59e0b;
    color: white;
    border-radius: 8px;
    border: 2px solid #d97706;
"""


# --- CLASS 1 : WORKER (Pont entre le moteur et l'interface) ---
class ParkingWorker(QObject):
    log_signal = pyqtSignal(str)
    status_signal = pyqtSignal(dict)
    update_grid_signal = pyqtSignal(int, int)  # int=index, int=status (-1 paiement, 0 occupée, 1 libre)

    def __init__(self, capacite_voitures, capacite_motos, tarif_horaire=TARIF_HORAIRE_DEFAULT):
        super().__init__()
        self.system = ParkingSystem(capacite_voitures=capacite_voitures,
                                    capacite_motos=capacite_motos,
                                    tarif_horaire=tarif_horaire,
                                    journal=self.log)
        self.compteurs_plaques = {c: 0 for c in CategorieVehicule}
        self.historiques = {}  # plaque -> liste des états traversés
        self.vehicule_suivi = None

    def log(self, message):
        self.log_signal.emit(message)
        print(message)

    def _plaque_auto(self, categorie):
        self.compteurs_plaques[categorie] += 1
        prefixe = "V" if categorie is CategorieVehicule.VOITURE else "M"
        return f"{prefixe}-{self.compteurs_plaques[categorie]:03d}"

    def _suivre(self, plaque):
        """Ajoute l'état courant du véhicule à son historique."""
        etat = self.system.etat_vehicule(plaque)
        historique = self.historiques.setdefault(plaque, ["NON_VU"])
        if historique[-1] != etat:
            historique.append(etat)
        self.vehicule_suivi = plaque

        # Seul le véhicule suivi garde son historique une fois sorti
        sortis = [p for p in self.historiques
                  if p != plaque and self.system.etat_vehicule(p) == "NON_VU"]
        for p in sortis:
            del self.historiques[p]

    def entree(self, categorie, plaque=""):
        plaque = plaque.strip() or self._plaque_auto(categorie)
        if self.system.etat_vehicule(plaque) == "NON_VU":
            self.historiques[plaque] = ["NON_VU"]
        try:
            resultat = self.system.admettre(categorie, plaque)
        except ErreurParking as erreur:
            QApplication.beep()
            self.log(f"[Erreur] {erreur}")
            return

        self._suivre(plaque)
        if resultat.en_attente:
            QApplication.beep()
            self.log(f"--- ⏳ {plaque} en attente (position {resultat.position_attente}) ---")
        else:
            icon = ICONES[categorie]
            self.log(f"--- {icon} Entrée {plaque} (Place P-{resultat.id_place}) ---")
            self.update_grid_signal.emit(resultat.id_place - 1, 0)
        self.update_status()

    def sortie(self, plaque=""):
        plaque = plaque.strip()
        if not plaque:
            garees = list(self.system.tickets_actifs)
            if not garees:
                self.log("[Erreur] Le parking est vide !")
                return
            plaque = random.choice(garees)

        try:
            sortie = self.system.liberer(plaque)
        except ErreurParking as erreur:
            QApplication.beep()
            self.log(f"[Erreur] {erreur}")
            return

        self._suivre(plaque)
        duree = int(time.time() - sortie.ticket.heure_entree)
        self.log(f"--- 🛑 Sortie P-{sortie.id_place} ({plaque}). Durée: {duree}s. "
                 f"Facture: {sortie.montant} {DEVISE} ({sortie.heures} h) ---")
        if sortie.vehicule_promu:
            self._suivre(sortie.vehicule_promu)
            self.log(f"--- ⏩ {sortie.vehicule_promu} quitte la file (Place P-{sortie.id_place}) ---")

        self.update_grid_signal.emit(sortie.id_place - 1, -1)
        self.update_status()
        QTimer.singleShot(500, lambda: self._finaliser_sortie(sortie.id_place))

    def _finaliser_sortie(self, id_place):
        occupee = self.system.places[id_place - 1].occupee
        self.update_grid_signal.emit(id_place - 1, 0 if occupee else 1)
        self.update_status()

    def update_status(self):
        status = self.system.get_status()
        plaque = self.vehicule_suivi
        status["vehicule_suivi"] = plaque
        status["etat_vehicule"] = self.system.etat_vehicule(plaque) if plaque else "NON_VU"
        status["history"] = self.historiques.get(plaque, [])
        self.status_signal.emit(status)


# --- CLASS 2 : WIDGET GRAPHE (Cycle de vie d'un véhicule) ---
class GraphWidget(QWidget):
    def __init__(self, automate):
        super().__init__()
        self.automate = automate

        layout = QVBoxLayout()
        self.setLayout(layout)
        layout.setContentsMargins(0, 0, 0, 0)

        self.figure = Figure(facecolor='#2b2b2b')
        self.canvas = FigureCanvas(self.figure)
        layout.addWidget(self.canvas)

        self.canvas.mpl_connect('button_press_event', self.on_click)
        self.selected_node = None

        self.G = nx.DiGraph()
        self.pos = {
            "NON_VU": (0.0, 4.0),
            "EN_ATTENTE": (6.0, 8.0),
            "GARE": (12.0, 4.0),
        }

        self.labels_map = {
            "NON_VU": "1. NON\nSUIVI",
            "EN_ATTENTE": "2. EN\nATTENTE",
            "GARE": "3. VÉHICULE\nGARÉ",
        }

        self.state_info = {
            "NON_VU": "Véhicule inconnu du parking (avant l'entrée ou après la sortie).",
            "EN_ATTENTE": "Aucune place libre de sa catégorie : le véhicule attend dans la file FIFO.",
            "GARE": "Place attribuée et ticket émis. Le montant sera calculé à la sortie.",
        }

        self._construire_structure()
        self.draw_graph("NON_VU")

    def _construire_structure(self):
        for etat in self.automate.list_etats.values():
            self.G.add_node(etat.label_etat)
        for t in self.automate.list_transitions:
            self.G.add_edge(t.etat_source.label_etat, t.etat_dest.label_etat,
                            label=t.etiquette.replace("_", " "))

    def on_click(self, event):
        if event.inaxes is None:
            return
        min_dist = float('inf')
        closest = None
        for node, (x, y) in self.pos.items():
            dist = (x - event.xdata)**2 + (y - event.ydata)**2
            if dist < min_dist:
                min_dist = dist
                closest = node

        if closest and min_dist < 1.5:
            self.selected_node = closest if self.selected_node != closest else None
            self.draw_graph(self.last_label, self.last_history, self.last_plaque)

    def draw_graph(self, current_label, history=(), plaque=None):
        self.last_label = current_label
        self.last_history = list(history)
        self.last_plaque = plaque

        self.figure.clear()
        ax = self.figure.add_subplot(111)
        ax.set_facecolor('#2b2b2b')

        node_colors = []
        edge_colors = []
        node_sizes = []
        for node in self.G.nodes():
            size = 6000
            if node == current_label and plaque:
                node_colors.append('#e74c3c')
                edge_colors.append('#c0392b')
            elif node == self.selected_node:
                node_colors.append('#f1c40f')
                edge_colors.append('#f39c12')
                size = 6500
            elif node == "EN_ATTENTE":
                node_colors.append('#ffe4b5')
                edge_colors.append('orange')
            elif node == "GARE":
                node_colors.append('#ccffcc')
                edge_colors.append('green')
            else:
                node_colors.append('#eeeeee')
                edge_colors.append('#bdc3c7')
            node_sizes.append(size)

        nx.draw_networkx_nodes(self.G, self.pos, ax=ax, node_color=node_colors,
                               edgecolors=edge_colors, linewidths=3, node_size=node_sizes)
        nx.draw_networkx_labels(self.G, self.pos, ax=ax, labels=self.labels_map,
                                font_size=9, font_weight="bold")

        hist_edges = []
        for i in range(len(self.last_history) - 1):
            u, v = self.last_history[i], self.last_history[i + 1]
            if self.G.has_edge(u, v):
                hist_edges.append((u, v))

        # Arcs courbes : NON_VU <-> GARE existe dans les deux sens
        nx.draw_networkx_edges(self.G, self.pos, ax=ax, edge_color='#ecf0f1',
                               arrows=True, arrowsize=25, width=2.0,
                               connectionstyle='arc3,rad=0.15',
                               min_source_margin=25, min_target_margin=25)
        if hist_edges:
            nx.draw_networkx_edges(self.G, self.pos, ax=ax, edgelist=hist_edges,
                                   edge_color='#3498db', style='dashed', alpha=0.8,
                                   arrows=True, arrowsize=25, width=2.5,
                                   connectionstyle='arc3,rad=0.15',
                                   min_source_margin=25, min_target_margin=25)

        edge_labels = nx.get_edge_attributes(self.G, 'label')
        nx.draw_networkx_edge_labels(self.G, self.pos, edge_labels=edge_labels,
                                     font_color='#f39c12', font_size=8, ax=ax, label_pos=0.4,
                                     bbox=dict(facecolor='#2b2b2b', edgecolor='none', alpha=0.6))

        titre = self.labels_map.get(current_label, current_label).replace(chr(10), ' ')
        if plaque:
            titre = f"{plaque} : {titre}"
        ax.set_title(f"ÉTAT : {titre}", color="white", fontsize=14, fontweight='bold')
        ax.set_xlim(-2, 14)
        ax.set_ylim(0, 11)
        ax.axis('off')

        if self.selected_node:
            info = self.state_info.get(self.selected_node, "Pas d'info.")
            ax.text(6, 1.2, f"INFO ({self.selected_node}):\n{info}",
                    bbox=dict(facecolor='#f1c40f', alpha=0.9, boxstyle='round,pad=0.5'),
                    fontsize=10, color='black', ha='center')

        legend_elements = [
            Line2D([0], [0], marker='o', color='w', label='Actif', markerfacecolor='#e74c3c', markersize=10),
            Line2D([0], [0], color='#3498db', lw=2, linestyle='--', label='Historique'),
            Line2D([0], [0], color='#ecf0f1', lw=2, label='Transition Possible'),
            Line2D([0], [0], marker='o', color='w', label='Sélection', markerfacecolor='#f1c40f', markersize=10),
        ]
        ax.legend(handles=legend_elements, loc='upper right', facecolor='#2b2b2b',
                  edgecolor='white', labelcolor='white')

        self.canvas.draw()


# --- CLASS 3 : DASHBOARD ---
class ParkingDashboard(QMainWindow):
    def __init__(self, capacite_voitures, capacite_motos, tarif_horaire=TARIF_HORAIRE_DEFAULT):
        super().__init__()
        self.setWindowTitle("Parking Voitures / Motos - Tableau de bord")
        self.setGeometry(100, 100, 1200, 800)

        self.simulation_start = time.time()

        self.setStyleSheet("""
            QMainWindow { background-color: #0f172a; }
            QLabel { color: white; font-family: 'Segoe UI', sans-serif; }
            QLineEdit {
                background-color: #1e293b;
                color: white;
                border: 1px solid #475569;
                border-radius: 6px;
                padding: 8px;
                font-size: 14px;
            }
            QPushButton {
                background-color: #334155;
                color: white;
                border: none;
                padding: 12px;
                border-radius: 8px;
                font-family: 'Segoe UI', sans-serif;
                font-weight: bold;
                font-size: 14px;
            }
            QPushButton:hover { background-color: #475569; }
            QPushButton:pressed { background-color: #1e293b; }
        """)

        self.worker = ParkingWorker(capacite_voitures, capacite_motos, tarif_horaire)
        self.worker.log_signal.connect(self.append_log)
        self.worker.status_signal.connect(self.update_dashboard)
        self.worker.update_grid_signal.connect(self.update_place)

        self.init_ui()
        self.worker.update_status()

        self.timer_clock = QTimer(self)
        self.timer_clock.timeout.connect(self.update_clocks)
        self.timer_clock.start(1000)

    def init_ui(self):
        main = QWidget()
        self.setCentralWidget(main)
        layout = QVBoxLayout(main)
        layout.setSpacing(20)
        layout.setContentsMargins(20, 20, 20, 20)

        header_top = QHBoxLayout()
        self.lbl_sim_time = QLabel("⏱ SESSION: 00:00")
        self.lbl_sim_time.setFont(QFont("Segoe UI", 12, QFont.Bold))
        self.lbl_sim_time.setStyleSheet("color: #3b82f6; background-color: #1e293b; padding: 5px 10px; border-radius: 5px;")
        header_top.addStretch()
        header_top.addWidget(self.lbl_sim_time)
        layout.addLayout(header_top)

        # 1. KPI
        kpi_layout = QHBoxLayout()
        kpi_layout.setSpacing(15)
        self.card_money = self.create_kpi_card("RECETTES TOTALES", f"0 {DEVISE}", "#f59e0b")
        self.card_cars = self.create_kpi_card("VOITURES EN ATTENTE", "0", "#3b82f6")
        self.card_bikes = self.create_kpi_card("MOTOS EN ATTENTE", "0", "#8b5cf6")

        self.lbl_system_status = QLabel("DISPONIBLE")
        self.lbl_system_status.setFont(QFont("Segoe UI", 14, QFont.Bold))
        self.lbl_system_status.setStyleSheet("background-color: #10b981; padding: 8px 16px; border-radius: 6px;")

        kpi_layout.addWidget(self.card_money)
        kpi_layout.addWidget(self.card_cars)
        kpi_layout.addWidget(self.card_bikes)
        kpi_layout.addStretch()

        status_box = QHBoxLayout()
        l_stat = QLabel("ÉTAT DU PARKING :")
        l_stat.setStyleSheet("color: #94a3b8; font-weight: bold;")
        status_box.addWidget(l_stat)
        status_box.addWidget(self.lbl_system_status)
        kpi_layout.addLayout(status_box)
        layout.addLayout(kpi_layout)

        # 2. GRILLE DES PLACES (voitures puis motos)
        grid_frame = QFrame()
        grid_frame.setStyleSheet("background-color: #1e293b; border-radius: 12px;")
        grid_layout = QGridLayout(grid_frame)
        grid_layout.setSpacing(15)
        grid_layout.setContentsMargins(15, 15, 15, 15)
        self.places_widgets = []

        for i, place in enumerate(self.worker.system.places):
            lbl = QLabel()
            lbl.setAlignment(Qt.AlignCenter)
            lbl.setFixedSize(110, 90)
            lbl.setFont(QFont("Segoe UI", 10, QFont.Bold))
            grid_layout.addWidget(lbl, i // COLONNES_GRILLE, i % COLONNES_GRILLE)
            self.places_widgets.append(lbl)
            self.update_place(i, 1)

        layout.addWidget(grid_frame)

        # 3. COMMANDES & SUIVI
        bottom = QHBoxLayout()
        btns = QVBoxLayout()
        btns.setSpacing(10)

        self.input_plaque = QLineEdit()
        self.input_plaque.setPlaceholderText("Plaque (vide = automatique)")

        b_voiture = QPushButton("🚗  Entrée Voiture")
        b_voiture.setStyleSheet("QPushButton { background-color: #334155; border-left: 4px solid #3b82f6; } QPushButton:hover { background-color: #475569; }")
        b_voiture.clicked.connect(lambda: self.worker.entree(CategorieVehicule.VOITURE, self._prendre_plaque()))

        b_moto = QPushButton("🏍  Entrée Moto")
        b_moto.setStyleSheet("QPushButton { background-color: #334155; border-left: 4px solid #8b5cf6; } QPushButton:hover { background-color: #475569; }")
        b_moto.clicked.connect(lambda: self.worker.entree(CategorieVehicule.MOTO, self._prendre_plaque()))

        b_sortie = QPushButton("🛑  Sortie (plaque ou aléatoire)")
        b_sortie.setStyleSheet("QPushButton { background-color: #334155; border-left: 4px solid #f43f5e; } QPushButton:hover { background-color: #475569; }")
        b_sortie.clicked.connect(lambda: self.worker.sortie(self._prendre_plaque()))

        b_switch = QPushButton("🔄  Vue Console / Graphe")
        b_switch.setStyleSheet("border: 1px solid #475569;")
        b_switch.clicked.connect(self.toggle_view)

        btns.addWidget(self.input_plaque)
        btns.addWidget(b_voiture)
        btns.addWidget(b_moto)
        btns.addSpacing(5)
        btns.addWidget(b_sortie)
        btns.addSpacing(15)
        btns.addWidget(b_switch)
        btns.addStretch()

        self.stack = QStackedWidget()

        self.logs = QTextEdit()
        self.logs.setReadOnly(True)
        self.logs.setStyleSheet("""
            QTextEdit {
                background-color: rgba(30, 41, 59, 0.7);
                color: #10b981;
                font-family: 'Consolas', 'Courier New', monospace;
                font-size: 13px;
                border: 1px solid #475569;
                border-radius: 8px;
                padding: 10px;
            }
        """)

        self.graph_widget = GraphWidget(self.worker.system.automate)

        self.stack.addWidget(self.logs)
        self.stack.addWidget(self.graph_widget)

        bottom.addLayout(btns, 1)
        bottom.addWidget(self.stack, 3)
        layout.addLayout(bottom, 1)

    def _prendre_plaque(self):
        plaque = self.input_plaque.text()
        self.input_plaque.clear()
        return plaque

    def create_kpi_card(self, title, value, base_color):
        frame = QFrame()
        # .QFrame cible le conteneur seul, pas les QLabel enfants
        frame.setStyleSheet(f"""
            .QFrame {{
                background-color: qlineargradient(x1:0, y1:0, x2:0, y2:1, stop:0 {base_color}, stop:1 #1e293b);
                border-radius: 10px;
                border: 1px solid {base_color};
            }}
            QLabel {{
                border: none;
                background: transparent;
            }}
        """)
        frame.setFixedSize(200, 85)

        vbox = QVBoxLayout(frame)
        vbox.setContentsMargins(15, 10, 15, 10)

        l_title = QLabel(title)
        l_title.setFont(QFont("Segoe UI", 9, QFont.Bold))
        l_title.setStyleSheet("color: rgba(255, 255, 255, 180);")

        l_val = QLabel(value)
        l_val.setFont(QFont("Segoe UI", 18, QFont.Bold))
        l_val.setStyleSheet("color: white;")
        l_val.setAlignment(Qt.AlignLeft | Qt.AlignVCenter)

        vbox.addWidget(l_title)
        vbox.addWidget(l_val)
        return frame

    def toggle_view(self):
        self.stack.setCurrentIndex(1 - self.stack.currentIndex())

    def update_dashboard(self, stats):
        self.card_money.findChildren(QLabel)[1].setText(f"{stats.get('recettes', 0)} {DEVISE}")
        attente = stats.get("attente", {})
        self.card_cars.findChildren(QLabel)[1].setText(str(attente.get(CategorieVehicule.VOITURE.value, 0)))
        self.card_bikes.findChildren(QLabel)[1].setText(str(attente.get(CategorieVehicule.MOTO.value, 0)))

        lbl_etat = stats.get("etat_parking", "???")
        self.lbl_system_status.setText(lbl_etat)
        if lbl_etat == "COMPLET":
            self.lbl_system_status.setStyleSheet("background-color: #f43f5e; padding: 8px 16px; border-radius: 6px;")
        else:
            self.lbl_system_status.setStyleSheet("background-color: #10b981; padding: 8px 16px; border-radius: 6px;")

        self.graph_widget.draw_graph(stats.get("etat_vehicule", "NON_VU"),
                                     stats.get("history", []),
                                     stats.get("vehicule_suivi"))

    def append_log(self, text):
        self.logs.append(text)
        self.logs.verticalScrollBar().setValue(self.logs.verticalScrollBar().maximum())

    def update_place(self, idx, status):
        # Le texte des places occupées est rafraîchi par update_clocks
        l = self.places_widgets[idx]
        place = self.worker.system.places[idx]
        icon = ICONES[place.categorie]

        if status == 1:
            l.setStyleSheet(STYLE_LIBRE)
            l.setText(f"P-{idx + 1} {icon}\nLIBRE")
        elif status == 0:
            l.setStyleSheet(STYLE_OCCUPEE)
        elif status == -1:
            l.setStyleSheet(STYLE_PAIEMENT)
            l.setText(f"P-{idx + 1} {icon}\n⏳ PAIEMENT")

    def update_clocks(self):
        elapsed = time.time() - self.simulation_start
        m, s = divmod(int(elapsed), 60)
        self.lbl_sim_time.setText(f"⏱ SESSION: {m:02d}:{s:02d}")

        current_time = time.time()
        for ticket in list(self.worker.system.tickets_actifs.values()):
            widget = self.places_widgets[ticket.id_place - 1]
            mm, ss = divmod(int(current_time - ticket.heure_entree), 60)
            hh, mm = divmod(mm, 60)
            widget.setText(f"P-{ticket.id_place} | {ticket.id_vehicule}\n{hh:02d}:{mm:02d}:{ss:02d}")
            widget.setStyleSheet(STYLE_OCCUPEE)


def lancer_dashboard(capacite_voitures, capacite_motos, tarif_horaire=TARIF_HORAIRE_DEFAULT):
    app = QApplication(sys.argv)
    window = ParkingDashboard(capacite_voitures, capacite_motos, tarif_horaire)
    window.show()
    return app.exec_()


if __name__ == "__main__":
    sys.exit(lancer_dashboard(5, 5))
