"""
Sous-package `models` du moteur de pricing.

- `entities.py` : entités (baseline, offres concurrentes, résultats, statuts),
- `categories.py` : table des catégories (élasticité, profil de zones),
- `demand_model.py` : optimum théorique, élasticité calibrée, projection de profit,
- `market_model.py` : statistiques marché (filtre IQR, moyenne pondérée).
"""
