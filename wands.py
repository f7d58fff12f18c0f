#!/usr/bin/env python3
#
#Demo wand generators.
#
#Each wand is a spell expression over a few projectile tokens. The spam wand
#is recursive: it fires a chainsaw, or a random projectile followed by more of
#the same wand (weight 5 against 1, so about six casts on average).

from typing import Dict, Optional

from spell_expr import (
    Expr, RefTable, alternative, alternatives, bind, maybe, self_ref,
    sequence, token, weight,
)

CHAINSAW = 'CHAINSAW'
LIGHT_BULLET = 'LIGHT_BULLET'
LIGHT_BULLET_TRIGGER = 'LIGHT_BULLET_TRIGGER'

WAND_NAMES = ('projectile', 'maybe_chainsaw', 'probably_chainsaw', 'two_chainsaws', 'spam')


def build_wands(table: Optional[RefTable] = None, spam_weight: float = 5.0) -> Dict[str, Expr]:
    """
    Build every demo wand.

    A fresh RefTable is used unless one is given, so repeated calls never
    share self-reference slots.
    """
    if table is None:
        table = RefTable()

    chainsaw = token(CHAINSAW)
    spark = token(LIGHT_BULLET)
    spark_trigger = token(LIGHT_BULLET_TRIGGER)

    projectile = alternatives(weight(chainsaw, 1), weight(spark, 1), weight(spark_trigger, 1))
    maybe_chainsaw = maybe(weight(chainsaw, 0.5))
    probably_chainsaw = alternative(weight(maybe_chainsaw, 0.5), weight(chainsaw, 0.5))
    two_chainsaws = sequence(chainsaw, probably_chainsaw)

    spam = self_ref(table)
    bind(spam, alternative(weight(chainsaw, 1), weight(sequence(projectile, spam), spam_weight)))

    return {
        'projectile': projectile,
        'maybe_chainsaw': maybe_chainsaw,
        'probably_chainsaw': probably_chainsaw,
        'two_chainsaws': two_chainsaws,
        'spam': spam,
    }


def get_wand(name: str, table: Optional[RefTable] = None) -> Expr:
    wands = build_wands(table)
    if name not in wands:
        raise KeyError(f"unknown wand {name!r}, choose from {', '.join(WAND_NAMES)}")
    return wands[name]
