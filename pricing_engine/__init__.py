"""
Moteur de pricing concurrentiel.

Ce package contient :
- la configuration du moteur (`config.py`),
- les entités, la table des catégories et les modèles élasticité / marché,
- le validateur de données marché et le moteur de décision de prix,
- l'orchestrateur du pipeline et le serveur JSON-lines,
- les interfaces vers la base de données et le fournisseur d'inflation.
"""
