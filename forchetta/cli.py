"""Flask CLI commands (``flask --app main <command>``)."""

from __future__ import annotations

import click
from flask import current_app
from flask.cli import with_appcontext

from .models import RecipePayload

SAMPLE_RECIPES = [
    (
        RecipePayload(
            title="Tiramisù",
            ingredients=[
                "300 g di savoiardi",
                "3 uova (tuorli + albumi montati)",
                "250 g di mascarpone",
                "300 ml di caffè espresso freddo",
                "80 g di zucchero",
                "Cacao amaro q.b.",
            ],
            instructions=(
                "Monta i tuorli con lo zucchero fino a ottenere una crema chiara e spumosa. "
                "Aggiungi il mascarpone e mescola bene. Monta a neve gli albumi e incorporali "
                "delicatamente alla crema. Intingi velocemente i savoiardi nel caffè e disponili "
                "in una pirofila. Copri con uno strato di crema, poi continua alternando "
                "savoiardi e crema. Termina con crema e spolvera di cacao amaro. Lascia riposare "
                "in frigo almeno 3 ore prima di servire."
            ),
        ),
        "https://res.cloudinary.com/dn9qbyrje/image/upload/v1756830340/forchetta/k7lh95sf0a5mm9a4vx0k.webp",
    ),
    (
        RecipePayload(
            title="Carbonara",
            ingredients=[
                "200 g di spaghetti",
                "2 uova (solo i tuorli)",
                "80 g di guanciale",
                "40 g di pecorino romano grattugiato",
                "Pepe nero q.b.",
            ],
            instructions=(
                "Cuoci gli spaghetti in acqua salata. Rosola il guanciale a cubetti fino a "
                "renderlo croccante. Sbatti i tuorli con il pecorino e abbondante pepe. Scola "
                "la pasta al dente, unisci al guanciale e togli dal fuoco. Aggiungi la crema di "
                "uova e pecorino, mescola velocemente. Servi subito con altro pecorino e pepe."
            ),
        ),
        "https://res.cloudinary.com/dn9qbyrje/image/upload/v1756830424/forchetta/jgpxveltmrpefdli3uzl.jpg",
    ),
]


@click.command("seed")
@click.option("--keep", is_flag=True, help="Do not remove existing recipes first.")
@with_appcontext
def seed_command(keep: bool) -> None:
    """Replace the stored recipes with a small sample catalog."""

    store = current_app.extensions["forchetta"].store

    if not keep:
        removed = store.delete_all()
        click.echo(f"Removed {removed} existing recipe(s).")

    for payload, image_url in SAMPLE_RECIPES:
        store.create(payload, image_url=image_url)

    click.echo(f"Seeded {len(SAMPLE_RECIPES)} recipe(s).")


__all__ = ["seed_command"]
