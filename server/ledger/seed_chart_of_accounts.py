"""Standard Slovak chart of accounts (framework chart for entrepreneurs).

Each row is (synthetic code, name, type, off-balance flag). Only the synthetic
accounts are seeded; companies add analytic sub-accounts themselves.
"""

ASSET = "asset"
LIABILITY = "liability"
REVENUE = "revenue"
EXPENSE = "expense"

STANDARD_ACCOUNTS: list[tuple[str, str, str, bool]] = [
    # Class 0: long-term assets
    ("013", "Softver", ASSET, False),
    ("014", "Ocenitelne prava", ASSET, False),
    ("021", "Stavby", ASSET, False),
    ("022", "Samostatne hnutelne veci a subory hnutelnych veci", ASSET, False),
    ("023", "Dopravne prostriedky", ASSET, False),
    ("031", "Pozemky", ASSET, False),
    ("041", "Obstaranie dlhodobeho nehmotneho majetku", ASSET, False),
    ("042", "Obstaranie dlhodobeho hmotneho majetku", ASSET, False),
    ("073", "Opravky k softveru", LIABILITY, False),
    ("081", "Opravky k stavbam", LIABILITY, False),
    ("082", "Opravky k samostatnym hnutelnym veciam a suborom hnutelnych veci", LIABILITY, False),
    ("083", "Opravky k dopravnym prostriedkom", LIABILITY, False),
    # Class 1: inventory
    ("111", "Obstaranie materialu", ASSET, False),
    ("112", "Material na sklade", ASSET, False),
    ("131", "Obstaranie tovaru", ASSET, False),
    ("132", "Tovar na sklade a v predajniach", ASSET, False),
    # Class 2: financial accounts
    ("211", "Pokladnica", ASSET, False),
    ("213", "Ceniny", ASSET, False),
    ("221", "Bankove ucty", ASSET, False),
    ("231", "Kratkodobe bankove uvery", LIABILITY, False),
    ("261", "Peniaze na ceste", ASSET, False),
    # Class 3: receivables and payables
    ("311", "Odberatelia", ASSET, False),
    ("314", "Poskytnute preddavky", ASSET, False),
    ("315", "Ostatne pohladavky", ASSET, False),
    ("321", "Dodavatelia", LIABILITY, False),
    ("324", "Prijate preddavky", LIABILITY, False),
    ("325", "Ostatne zavazky", LIABILITY, False),
    ("331", "Zamestnanci", LIABILITY, False),
    ("333", "Ostatne zavazky voci zamestnancom", LIABILITY, False),
    ("335", "Pohladavky voci zamestnancom", ASSET, False),
    ("336", "Zuctovanie s organmi socialneho a zdravotneho poistenia", LIABILITY, False),
    ("341", "Dan z prijmov", LIABILITY, False),
    ("342", "Ostatne priame dane", LIABILITY, False),
    ("343", "Dan z pridanej hodnoty", LIABILITY, False),
    ("345", "Ostatne dane a poplatky", LIABILITY, False),
    ("355", "Ostatne pohladavky zo zuctovania", ASSET, False),
    ("379", "Ine zavazky", LIABILITY, False),
    ("381", "Naklady buducich obdobi", ASSET, False),
    ("383", "Vydavky buducich obdobi", LIABILITY, False),
    ("384", "Vynosy buducich obdobi", LIABILITY, False),
    ("385", "Prijmy buducich obdobi", ASSET, False),
    ("391", "Opravne polozky k pohladavkam", LIABILITY, False),
    ("395", "Vnutorne zuctovanie", ASSET, False),
    # Class 4: equity and long-term liabilities
    ("411", "Zakladne imanie", LIABILITY, False),
    ("413", "Ostatne kapitalove fondy", LIABILITY, False),
    ("421", "Zakonny rezervny fond", LIABILITY, False),
    ("428", "Nerozdeleny zisk minulych rokov", LIABILITY, False),
    ("429", "Neuhradena strata minulych rokov", LIABILITY, False),
    ("431", "Vysledok hospodarenia v schvalovani", LIABILITY, False),
    ("451", "Rezervy zakonne", LIABILITY, False),
    ("461", "Bankove uvery", LIABILITY, False),
    ("472", "Zavazky zo socialneho fondu", LIABILITY, False),
    ("479", "Ostatne dlhodobe zavazky", LIABILITY, False),
    ("491", "Vlastne imanie fyzickej osoby - podnikatela", LIABILITY, False),
    # Class 5: expenses
    ("501", "Spotreba materialu", EXPENSE, False),
    ("502", "Spotreba energie", EXPENSE, False),
    ("504", "Predany tovar", EXPENSE, False),
    ("511", "Opravy a udrzovanie", EXPENSE, False),
    ("512", "Cestovne", EXPENSE, False),
    ("513", "Naklady na reprezentaciu", EXPENSE, False),
    ("518", "Ostatne sluzby", EXPENSE, False),
    ("521", "Mzdove naklady", EXPENSE, False),
    ("524", "Zakonne socialne poistenie", EXPENSE, False),
    ("527", "Zakonne socialne naklady", EXPENSE, False),
    ("531", "Dan z motorovych vozidiel", EXPENSE, False),
    ("532", "Dan z nehnutelnosti", EXPENSE, False),
    ("538", "Ostatne dane a poplatky", EXPENSE, False),
    ("541", "Zostatkova cena predaneho dlhodobeho nehmotneho a hmotneho majetku", EXPENSE, False),
    ("544", "Zmluvne pokuty, penale a uroky z omeskania", EXPENSE, False),
    ("546", "Odpis pohladavky", EXPENSE, False),
    ("548", "Ostatne naklady na hospodarsku cinnost", EXPENSE, False),
    ("551", "Odpisy dlhodobeho nehmotneho majetku a dlhodobeho hmotneho majetku", EXPENSE, False),
    ("562", "Uroky", EXPENSE, False),
    ("563", "Kurzove straty", EXPENSE, False),
    ("568", "Ostatne financne naklady", EXPENSE, False),
    ("591", "Dan z prijmov - splatna", EXPENSE, False),
    ("592", "Dan z prijmov - odlozena", EXPENSE, False),
    # Class 6: revenue
    ("601", "Trzby za vlastne vyrobky", REVENUE, False),
    ("602", "Trzby z predaja sluzieb", REVENUE, False),
    ("604", "Trzby za tovar", REVENUE, False),
    ("641", "Trzby z predaja dlhodobeho nehmotneho a hmotneho majetku", REVENUE, False),
    ("642", "Trzby z predaja materialu", REVENUE, False),
    ("644", "Zmluvne pokuty, penale a uroky z omeskania", REVENUE, False),
    ("648", "Ostatne vynosy z hospodarskej cinnosti", REVENUE, False),
    ("662", "Uroky", REVENUE, False),
    ("663", "Kurzove zisky", REVENUE, False),
    ("668", "Ostatne financne vynosy", REVENUE, False),
    # Class 7: closing and off-balance accounts
    ("701", "Zaciatocny ucet suvahovy", ASSET, False),
    ("702", "Konecny ucet suvahovy", ASSET, False),
    ("710", "Ucet ziskov a strat", ASSET, False),
    ("791", "Podsuvahove ucty - prenajaty majetok", ASSET, True),
    ("792", "Podsuvahove ucty - majetok v uschove", ASSET, True),
    ("799", "Podsuvahove ucty - vyrovnavaci ucet", ASSET, True),
]
