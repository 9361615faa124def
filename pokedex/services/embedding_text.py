"""Texts fed to the embedding model, one per EmbeddingChannel."""

import re

from pokedex.models.pokemon import EmbeddingChannel, Pokemon

TYPE_DESCRIPTORS: dict[str, tuple[str, ...]] = {
    "fire": ("flame", "burn", "heat", "hot", "blazing", "scorching"),
    "water": ("aqua", "ocean", "sea", "marine", "splash", "wave", "fluid"),
    "electric": ("bolt", "lightning", "thunder", "shock", "spark", "zap", "voltage"),
    "grass": ("leaf", "plant", "nature", "forest", "bloom", "green", "photosynthesis"),
    "ice": ("frost", "freeze", "cold", "snow", "blizzard", "frozen", "arctic"),
    "ground": ("earth", "soil", "dirt", "sand", "mud", "terrestrial", "seismic"),
    "flying": ("wind", "air", "sky", "wing", "feather", "aerial", "soaring"),
    "psychic": ("mind", "mental", "brain", "telekinesis", "telepathy", "psychokinesis"),
    "bug": ("insect", "beetle", "spider", "ant", "swarm", "chitinous"),
    "rock": ("stone", "mineral", "crystal", "gem", "boulder", "geological"),
    "ghost": ("spirit", "phantom", "spook", "haunt", "ethereal", "spectral"),
    "dragon": ("wyrm", "drake", "serpent", "legendary", "mythical", "ancient"),
    "dark": ("shadow", "evil", "night", "sinister", "malevolent", "obscure"),
    "steel": ("metal", "iron", "chrome", "metallic", "mechanical", "industrial"),
    "fairy": ("magic", "mystical", "enchanted", "whimsical", "magical", "ethereal"),
    "poison": ("toxic", "venom", "acid", "poisonous", "venomous", "noxious"),
    "fighting": ("martial", "combat", "warrior", "brawl", "battle", "physical"),
    "normal": ("ordinary", "common", "regular", "standard", "typical", "basic"),
}

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def stat_descriptors(pokemon: Pokemon) -> list[str]:
    words: list[str] = []
    if pokemon.speed > 100:
        words += ["fast", "quick", "speedy"]
    if pokemon.hp + pokemon.defense > 160:
        words += ["tank", "bulky", "defensive"]
    if pokemon.attack > 100 and pokemon.defense < 70:
        words += ["glass cannon", "fragile", "offensive"]
    if pokemon.attack > 120:
        words += ["strong", "powerful", "mighty"]
    if pokemon.hp > 100:
        words += ["tough", "resilient", "hardy"]
    if pokemon.defense > 100:
        words += ["defensive", "sturdy", "protective"]
    return words


def description_text(pokemon: Pokemon) -> str:
    """Bag of characteristic words derived from stats, types and abilities."""
    words = stat_descriptors(pokemon)
    for type_name in pokemon.types:
        words.extend(TYPE_DESCRIPTORS.get(type_name.lower(), ()))
    words.extend(_NON_ALNUM_RE.sub(" ", ability.lower()) for ability in pokemon.abilities)
    return " ".join(words)


def combined_text(pokemon: Pokemon) -> str:
    return (
        f"{pokemon.name} is a {' and '.join(pokemon.types)} type pokemon "
        f"from generation {pokemon.generation} with {pokemon.hp} HP, "
        f"{pokemon.attack} attack, {pokemon.defense} defense, and {pokemon.speed} speed. "
        f"Abilities: {', '.join(pokemon.abilities)}."
    )


def channel_texts(pokemon: Pokemon) -> dict[EmbeddingChannel, str]:
    """Build the text to embed for every channel of a Pokemon."""
    return {
        EmbeddingChannel.NAME: pokemon.name,
        EmbeddingChannel.TYPE: f"{' '.join(pokemon.types)} type pokemon",
        EmbeddingChannel.DESCRIPTION: description_text(pokemon),
        EmbeddingChannel.COMBINED: combined_text(pokemon),
    }
