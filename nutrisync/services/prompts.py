"""
AI prompt templates for meal analysis and retrospective meal parsing.

Each analysis tool has its own system prompt plus a builder for the user
message. All meal prompts ask for the same camelCase JSON shape, decoded by
MealAnalysisSchema in ai_schemas.py.
"""

from nutrisync.models.analysis import AnalysisRequest
from nutrisync.models.meal_window import MealWindow
from nutrisync.models.nutrition import NutritionEstimate

# =============================================================================
# SHARED OUTPUT FORMAT
# =============================================================================

MEAL_JSON_FORMAT = """{
  "mealName": "Grilled Chicken Bowl",
  "confidence": 0.75,
  "ingredients": [
    {"name": "grilled chicken breast", "amount": "4", "unit": "oz", "foodGroup": "Protein"},
    {"name": "white rice", "amount": "1", "unit": "cup", "foodGroup": "Grain"}
  ],
  "nutrition": {"calories": 520, "protein": 42.0, "carbs": 55.0, "fat": 12.0},
  "micronutrients": [
    {"name": "Niacin", "amount": 15.5, "unit": "mg", "percentRDA": 97.0}
  ],
  "clarifications": [
    {
      "question": "Was any sauce added?",
      "clarificationType": "sauce",
      "options": [
        {"text": "No sauce", "calorieImpact": 0, "isRecommended": true},
        {"text": "Teriyaki", "calorieImpact": 60, "carbImpact": 12.0},
        {"text": "Creamy sauce", "calorieImpact": 120, "fatImpact": 12.0}
      ]
    }
  ],
  "brandDetected": null
}"""

FIELD_NAME_RULES = """CRITICAL: Use exactly these field names:
- "ingredients" (NOT mainComponents)
- "nutrition" (NOT nutritionCalculation)
- "clarifications" (NOT clarificationNeeds)
- Each ingredient must have: name, amount, unit, foodGroup
Return ONLY the JSON object, no markdown code blocks."""

# =============================================================================
# INITIAL ANALYSIS
# =============================================================================

INITIAL_ANALYSIS_SYSTEM_PROMPT = f"""You are an expert nutritionist analyzing meals for precise tracking.

TASK: Identify the meal from a photo and/or a spoken description and estimate its nutrition.

1. MEAL IDENTIFICATION
   - Name: concise meal name, max 4 words
   - Confidence: 0.0-1.0, BE CONSERVATIVE
     - 0.9-1.0: only when ALL ingredients are clearly visible or described
     - 0.7-0.85: beverages, smoothies, mixed dishes, sauces
     - 0.5-0.7: when major ingredients are uncertain
   - If you recognise restaurant branding, packaging or a menu item, keep the brand in the meal name and set brandDetected

2. PORTION ESTIMATION
   - Use visual cues (plate size, utensils, hands)
   - Use standard portions when the description gives none

3. NUTRITION
   - Use USDA standard values, accounting for cooking method and added fats
   - Protein, carbs and fat in grams with 1 decimal

4. MICRONUTRIENTS
   - Top 5-8 most significant, focused on the user's goal

5. CLARIFICATIONS (2-4 questions MAX, practical only)
   - Restaurant meals: only sauces, drink sizes, customizations
   - Home-cooked meals: cooking fats, dressings, milk/base type, cooking method, portion size
   - Each option MUST include calorieImpact; protein/carb/fat impacts are optional

OUTPUT FORMAT (JSON only):
{MEAL_JSON_FORMAT}

{FIELD_NAME_RULES}"""


def _window_info(window: MealWindow | None) -> str:
    if window is None:
        return "No active meal window"
    return (
        f"Current Window: {window.purpose} "
        f"({window.start_time:%H:%M}-{window.end_time:%H:%M})\n"
        f"Window Targets: {window.target_calories} cal, {window.target_protein}g protein, "
        f"{window.target_carbs}g carbs, {window.target_fat}g fat"
    )


def build_initial_prompt(request: AnalysisRequest) -> str:
    """User message for the initial pass; voice-only requests say so explicitly."""
    ctx = request.user_context
    lines = [
        "USER CONTEXT:",
        f"- Goal: {ctx.primary_goal.display_name}",
        f"- Daily Targets: {ctx.daily_macros}",
        f"- {_window_info(request.meal_window)}",
        "",
    ]

    if request.transcript:
        lines.append(f"VOICE DESCRIPTION: {request.transcript}")
        lines.append("")

    if request.image:
        lines.append("Analyze the meal in this photo.")
    else:
        lines.append(
            "There is no photo. Analyze the meal from the description alone: "
            "parse it carefully for brands, portion sizes and ingredients."
        )

    return "\n".join(lines)


# =============================================================================
# BRAND SEARCH
# =============================================================================

BRAND_SEARCH_SYSTEM_PROMPT = """You match restaurant meals against official published nutrition.

DETECTION PRIORITY:
1. Visual brand indicators: logos, packaging, containers, wrappers, cups
2. Signature items: sauces, bun types, distinctive fries
3. Match food style to known chains (e.g. waffle fries = Chick-fil-A)

Restaurant Nutrition Database:

Chick-fil-A:
- Chicken Sandwich: 440 cal, 29g protein, 41g carbs, 19g fat
- Deluxe Sandwich: 540 cal, 32g protein, 43g carbs, 28g fat
- Spicy Sandwich: 460 cal, 28g protein, 45g carbs, 22g fat
- Grilled Sandwich: 390 cal, 37g protein, 44g carbs, 12g fat
- Nuggets (8pc): 260 cal, 27g protein, 11g carbs, 12g fat
- Nuggets (12pc): 390 cal, 41g protein, 16g carbs, 18g fat
- Waffle Fries (medium): 420 cal, 5g protein, 51g carbs, 24g fat
- Cobb Salad: 510 cal, 40g protein, 28g carbs, 27g fat

McDonald's:
- Big Mac: 550 cal, 25g protein, 45g carbs, 30g fat
- Quarter Pounder: 520 cal, 30g protein, 42g carbs, 26g fat
- McChicken: 400 cal, 14g protein, 41g carbs, 21g fat
- Medium Fries: 340 cal, 4g protein, 43g carbs, 16g fat

Chipotle:
- Chicken Bowl (typical): 750 cal, 45g protein, 65g carbs, 32g fat
- Steak Bowl (typical): 800 cal, 40g protein, 65g carbs, 37g fat
- Burrito (typical): 1000 cal, 45g protein, 110g carbs, 40g fat

RULES:
- Use the official values above when the item matches; otherwise estimate from similar items
- DO NOT add calories for oil or preparation, restaurant values already include them
- The meal name MUST keep the brand: "Chick-fil-A Chicken Sandwich", never "Chicken Sandwich"
- If you cannot identify the menu item, answer with found=false

OUTPUT FORMAT (JSON only, no markdown code blocks):
{
  "found": true,
  "mealName": "McDonald's Big Mac Combo",
  "confidence": 0.95,
  "nutrition": {"calories": 1090, "protein": 29.0, "carbs": 128.0, "fat": 46.0},
  "brandDetected": "McDonald's"
}

or, when there is no match:
{"found": false}"""


def build_brand_search_prompt(
    brand: str, estimate: NutritionEstimate, is_generic: bool = False
) -> str:
    if is_generic:
        brand_line = "Task: IDENTIFY the brand/restaurant from the image and food characteristics"
    else:
        brand_line = f"Brand: {brand}"
    return (
        f"Initial detection: {estimate.meal_name}\n"
        f"{brand_line}\n"
        f"Current estimate: {estimate.nutrition.calories} cal, "
        f"{estimate.nutrition.protein_g}g protein, {estimate.nutrition.carbs_g}g carbs, "
        f"{estimate.nutrition.fat_g}g fat"
    )


# =============================================================================
# DEEP INGREDIENT ANALYSIS
# =============================================================================

DEEP_ANALYSIS_SYSTEM_PROMPT = f"""You perform detailed component-by-component analysis of meals.

SYSTEMATIC ANALYSIS STEPS:
1. INGREDIENT IDENTIFICATION
   - List EVERY component, including garnishes, sauces, cooking oils, butter, dressings
   - Be specific: "grilled chicken breast" not "chicken"
2. PORTION ESTIMATION
   - 3oz meat = deck of cards, 1 cup = baseball
   - Account for perspective and stacking
3. COOKING METHOD IMPACT
   - Fried adds ~50-100 cal from oil absorption
   - Sauteed typically 1-2 tsp oil (40-80 cal)
4. HIDDEN CALORIES
   - Restaurant portions are often 1.5-2x home portions
   - Butter on vegetables/bread (~100 cal/tbsp), sugar in sauces
5. CROSS-REFERENCE against USDA values

Return the complete estimate with updated confidence, a detailed ingredient
list, nutrition reflecting ALL components, and any clarifications still needed.

OUTPUT FORMAT (JSON only):
{MEAL_JSON_FORMAT}

{FIELD_NAME_RULES}"""


def build_deep_analysis_prompt(estimate: NutritionEstimate) -> str:
    lines = [
        f"Initial detection: {estimate.meal_name}",
        f"Current confidence: {estimate.confidence:.2f}",
        "Current ingredients:",
    ]
    lines.extend(f"- {i.name}: {i.amount} {i.unit}" for i in estimate.ingredients)

    focus = []
    if estimate.confidence < 0.7:
        focus.append("- Low initial confidence suggests complex/hidden ingredients")
    if estimate.ingredient_count > 5:
        focus.append("- Multiple components need individual analysis")
    if estimate.nutrition.calories > 600:
        focus.append("- High calories suggest restaurant preparation or hidden fats")
    if focus:
        lines.append("")
        lines.append("For this specific meal, pay attention to:")
        lines.extend(focus)

    return "\n".join(lines)


# =============================================================================
# NUTRITION LOOKUP
# =============================================================================

NUTRITION_LOOKUP_SYSTEM_PROMPT = f"""You verify meal nutrition against reference databases.

For each item, use USDA FoodData Central values or packaged nutrition labels.
Account for raw vs cooked weight changes, standard cooking additions and
typical serving sizes. Return refined totals for the whole meal.

OUTPUT FORMAT (JSON only):
{MEAL_JSON_FORMAT}

{FIELD_NAME_RULES}"""


def build_nutrition_lookup_prompt(estimate: NutritionEstimate) -> str:
    items = "\n".join(f"- {i.name}: {i.amount} {i.unit}" for i in estimate.ingredients)
    return f"Meal: {estimate.meal_name}\n\nItems to verify:\n{items}"


# =============================================================================
# RETROSPECTIVE MEAL PARSING
# =============================================================================

RETROSPECTIVE_SYSTEM_PROMPT = """You split a user's description of earlier meals into individual meals.

Instructions:
1. Identify each distinct meal mentioned. "Eggs and toast" is ONE meal.
2. Keep the user's wording for the meal name
3. Estimate calories and macros for a typical portion
4. Keep the order in which the meals are described

OUTPUT FORMAT (strict JSON array only, no markdown code blocks):
[
  {"name": "Eggs and toast", "mealType": "breakfast", "calories": 350, "protein": 20, "carbs": 30, "fat": 15}
]"""


def build_window_context(windows: list[MealWindow]) -> str:
    """'1. Breakfast window (07:00-09:00, 500 cal), 2. ...'"""
    return ", ".join(
        f"{index}. {w.meal_type} window "
        f"({w.start_time:%H:%M}-{w.end_time:%H:%M}, {w.target_calories} cal)"
        for index, w in enumerate(windows, start=1)
    )


def build_retrospective_prompt(description: str, windows: list[MealWindow]) -> str:
    return (
        f"The user missed these meal windows today: {build_window_context(windows)}\n\n"
        f'User\'s description: "{description}"'
    )
