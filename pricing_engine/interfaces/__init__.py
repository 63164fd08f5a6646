"""
Sous-package `interfaces` du moteur de pricing.

Responsabilités :
- fournir une couche d'abstraction entre le moteur et la base
  (Supabase/PostgreSQL ou mémoire),
- exposer le fournisseur de taux d'inflation,
- faciliter le test (en permettant le mocking de cette couche).
"""
