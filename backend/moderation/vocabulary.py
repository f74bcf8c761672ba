"""
Label vocabularies and user-facing message templates.

Kept as immutable data so a policy can swap them without touching the
evaluator or the decision engine.
"""
from __future__ import annotations

from types import MappingProxyType

HUMAN_LABELS: tuple[str, ...] = (
    "person", "people", "human", "humans", "man", "men", "woman", "women",
    "child", "children", "baby", "babies", "infant", "toddler", "kid", "kids",
    "boy", "boys", "girl", "girls", "teenager", "teen", "adult", "adults",
    "face", "faces", "portrait", "portraits", "selfie", "selfies", "head", "heads",
    "hand", "hands", "arm", "arms", "leg", "legs", "foot", "feet",
    "family", "families", "crowd", "crowds", "couple", "couples", "friends", "friend",
    "colleagues", "dancing", "running", "walking", "playing",
    "worker", "workers", "employee", "employees", "staff", "personnel",
    "elderly", "senior", "youth",
)

# Localized-object names that mean a person is in frame.
HUMAN_OBJECT_NAMES: tuple[str, ...] = ("person", "people", "human")

ANIMAL_LABELS: tuple[str, ...] = (
    # dogs
    "dog", "dogs", "puppy", "puppies", "canine", "canines", "hound", "hounds",
    "terrier", "bulldog", "labrador", "german shepherd", "poodle", "golden retriever",
    "beagle", "rottweiler", "dachshund", "siberian husky", "border collie",
    "chihuahua", "shih tzu", "yorkshire terrier", "great dane", "mastiff",
    # cats
    "cat", "cats", "kitten", "kittens", "feline", "felines", "siamese",
    "maine coon", "tabby", "british shorthair", "ragdoll", "bengal", "scottish fold",
    "sphynx", "russian blue", "american shorthair",
    # birds
    "bird", "birds", "parrot", "parrots", "pigeon", "pigeons", "sparrow", "sparrows",
    "crow", "crows", "eagle", "eagles", "owl", "owls", "hawk", "hawks",
    "chicken", "chickens", "rooster", "hen", "duck", "ducks", "goose", "geese",
    "turkey", "turkeys", "peacock", "peacocks", "flamingo", "flamingos",
    # aquatic
    "fish", "fishes", "goldfish", "tropical fish", "shark", "sharks",
    "dolphin", "dolphins", "whale", "whales", "seal", "seals", "sea lion",
    # large animals
    "horse", "horses", "pony", "ponies", "donkey", "donkeys", "mule", "mules",
    "cow", "cows", "bull", "bulls", "buffalo", "buffaloes", "cattle", "livestock",
    "goat", "goats", "sheep", "lambs", "lamb", "pig", "pigs", "piglet",
    # small animals
    "rabbit", "rabbits", "bunny", "bunnies", "hamster", "hamsters", "guinea pig",
    "gerbil", "gerbils", "mouse", "mice", "rat", "rats", "squirrel", "squirrels",
    "chipmunk", "chipmunks",
    # reptiles
    "reptile", "reptiles", "snake", "snakes", "lizard", "lizards", "turtle", "turtles",
    "tortoise", "crocodile", "crocodiles", "alligator", "alligators", "gecko", "geckos",
    "iguana", "iguanas", "chameleon", "chameleons",
    # insects
    "insect", "insects", "spider", "spiders", "butterfly", "butterflies", "bee", "bees",
    "wasp", "wasps", "ant", "ants", "beetle", "beetles", "moth", "moths",
    # wild animals
    "monkey", "monkeys", "ape", "apes", "chimpanzee", "chimpanzees", "gorilla", "gorillas",
    "elephant", "elephants", "tiger", "tigers", "lion", "lions", "bear", "bears",
    "deer", "wolf", "wolves", "fox", "foxes", "zebra", "zebras", "giraffe", "giraffes",
    "hippopotamus", "rhinoceros", "kangaroo", "kangaroos",
    # general
    "pet", "pets", "animal", "animals", "wildlife", "mammal", "mammals", "domestic animal",
)

PROPERTY_LABELS: tuple[str, ...] = (
    "house", "building", "room", "interior", "exterior", "garden", "kitchen",
    "bedroom", "bathroom", "living room", "property", "real estate",
    "architecture", "home", "apartment", "floor", "wall", "ceiling",
    "door", "window", "furniture", "land", "plot", "balcony", "terrace",
    "pool", "garage", "driveway", "yard", "patio", "stairs", "lobby",
    "hall", "office", "commercial", "residential", "construction", "structure",
    "tree",
)

# Safe-search categories that are a hard rejection when flagged.
HARD_SAFETY_CATEGORIES: tuple[str, ...] = ("adult", "violence", "racy")

MESSAGES = MappingProxyType(
    {
        "human_detected": (
            "You have uploaded an image with human appearance. "
            "Please upload only property images without any people."
        ),
        "animal_detected": (
            "You have uploaded an image with animal appearance ({animal_name}). "
            "Please upload only property images without any animals or pets."
        ),
        "adult_content": "This image contains adult content and cannot be uploaded.",
        "violence_content": "This image contains violent content and cannot be uploaded.",
        "racy_content": "This image contains suggestive content and cannot be uploaded.",
        "medical_content": "This image contains medical content and cannot be uploaded.",
        "spoof_content": "This image appears to be altered or a spoof and cannot be uploaded.",
        "not_property": (
            "This image looks like it is not a property photo. "
            "It has been queued for review."
        ),
        "blur_detected": (
            "This image looks blurry. It has been queued for review; "
            "a clear and sharp photo is approved faster."
        ),
        "low_quality": (
            "This image is {width}x{height} pixels, below the minimum of "
            "{min_width}x{min_height}. It has been queued for review."
        ),
        "approved": "Image approved successfully.",
        "inference_unavailable": "Moderation service temporarily unavailable. Image will be reviewed later.",
        "review_approved": "Approved by a moderator.",
        "review_rejected": "Rejected by a moderator.",
    }
)

# What the uploader sees. The specific flagged category is never exposed.
PUBLIC_MESSAGES = MappingProxyType(
    {
        "approved": "Image approved",
        "rejected": "This image contains inappropriate content and cannot be uploaded.",
        "queued_for_review": "Image received and is under review.",
        "service_unavailable": "Image verification is temporarily unavailable. Please try again later.",
    }
)


def render_message(code: str, messages=MESSAGES, **values: object) -> str:
    template = messages.get(code) or "An error occurred."
    for key, value in values.items():
        template = template.replace("{" + key + "}", str(value))
    return template
